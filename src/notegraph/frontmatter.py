"""Front matter parsing for notes.

Wraps python-frontmatter so that a note with broken YAML still reads as a
note: its metadata is empty and its whole text is the body.
"""

from typing import Any

import frontmatter
import yaml


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split raw note text into (metadata, body).

    Returns ({}, content) when there is no front matter, when the YAML is
    invalid, or when it does not describe a mapping. Keys that YAML reads
    as numbers, dates or booleans (``2024:``, ``on:``) are turned into
    strings.
    """
    if not content.lstrip().startswith("---"):
        return {}, content

    try:
        metadata, body = frontmatter.parse(content)
    except yaml.YAMLError:
        return {}, content

    if not isinstance(metadata, dict):
        return {}, content
    return {str(key): value for key, value in metadata.items()}, body
