"""Wikilink, embed, tag and inline field extraction."""

import re
from typing import Any

from ..models import InlineField

# [[target]] and [[target|display]], but not ![[embed]]
LINK_PATTERN = re.compile(r"(?<!!)\[\[([^\]|]+)(?:\|[^\]]+)?\]\]")

# ![[target]] and ![[target|size]]
EMBED_PATTERN = re.compile(r"!\[\[([^\]|]+)(?:\|[^\]]+)?\]\]")

# #tag and #tag/subtag, preceded by start of line or whitespace
INLINE_TAG_PATTERN = re.compile(r"(?:^|\s)#([a-zA-Z0-9_/\-]+)")

# Dataview inline field: `Key:: value`
INLINE_FIELD_PATTERN = re.compile(r"^([a-zA-Z_][\w\s]*?)::(.*)$")

_FRONTMATTER_BLOCK = re.compile(r"^---[\s\S]*?---\n?")
_FENCED_CODE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE = re.compile(r"`[^`]+`")


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def extract_links(body: str) -> list[str]:
    """Extract wikilink targets from markdown content.

    Targets are returned raw: heading anchors (``Note#Section``) and folder
    prefixes are kept, display aliases are dropped. Resolution to actual
    files happens in the graph builder.

    Args:
        body: Markdown content to extract links from.

    Returns:
        Unique link targets in order of first appearance.
    """
    return _unique([match.strip() for match in LINK_PATTERN.findall(body)])


def extract_embeds(body: str) -> list[str]:
    """Extract ``![[embed]]`` targets (notes, images, PDFs) in order of first appearance."""
    return _unique([match.strip() for match in EMBED_PATTERN.findall(body)])


def normalize_tag(tag: str) -> str:
    return tag[1:] if tag.startswith("#") else tag


def extract_tags(content: str, frontmatter: dict[str, Any]) -> list[str]:
    """Extract tags from front matter and inline ``#tag`` markers.

    Front matter ``tags`` may be a list or a single string. Inline tags
    inside fenced code, inline code, or the front matter block are ignored.

    Args:
        content: Raw note text (front matter included or not).
        frontmatter: Parsed front matter.

    Returns:
        Unique tags without the leading ``#``, front matter tags first.
    """
    tags: list[str] = []

    declared = frontmatter.get("tags")
    if isinstance(declared, list):
        tags.extend(normalize_tag(tag) for tag in declared if isinstance(tag, str))
    elif isinstance(declared, str):
        tags.append(normalize_tag(declared))

    text = _FRONTMATTER_BLOCK.sub("", content, count=1)
    text = _FENCED_CODE.sub("", text)
    text = _INLINE_CODE.sub("", text)

    tags.extend(normalize_tag(match) for match in INLINE_TAG_PATTERN.findall(text))
    return _unique(tags)


def extract_inline_fields(body: str) -> list[InlineField]:
    """Extract Dataview ``key:: value`` fields, one per line."""
    fields: list[InlineField] = []
    for line_number, line in enumerate(body.split("\n"), start=1):
        match = INLINE_FIELD_PATTERN.match(line)
        if match:
            fields.append(
                InlineField(
                    key=match.group(1).strip(),
                    value=match.group(2).strip(),
                    line=line_number,
                )
            )
    return fields
