"""AI conversation export detection and message parsing.

Targets the unified export format used by chat archivers:

    ---
    source: Claude
    tags: [conversation]
    ---

    **User**: How do I ...?

    ---

    **Claude**: You can ...

    > [!TIP] Shortcut
    > Use the CLI instead.
"""

import re
from typing import Any

from ..models import (
    AISource,
    ConversationCallout,
    ConversationMessage,
    ConversationMetadata,
)
from .links import extract_tags

KNOWN_SOURCES: dict[str, AISource] = {source.value: source for source in AISource}
SOURCE_TAGS: dict[str, AISource] = {source.value.lower(): source for source in AISource}
CONVERSATION_TAGS = frozenset({"conversation", "research"})

USER_SPEAKER = "User"

# **Speaker**: or **Speaker (tool call)**: at the start of a line
ROLE_MARKER_PATTERN = re.compile(r"^\*\*(\w+(?:\s*\(.*?\))?)\*\*\s*:", re.MULTILINE)
MESSAGE_PATTERN = re.compile(r"^\*\*(\w+(?:\s*\(.*?\))?)\*\*\s*:\s*(.*)$", re.DOTALL)
SPEAKER_ANNOTATION = re.compile(r"\s*\(.*?\)")

CALLOUT_MARKER_PATTERN = re.compile(r"^>\s*\[!(\w+)\]", re.MULTILINE)
CALLOUT_HEADER_PATTERN = re.compile(r"^>\s*\[!(\w+)\][ \t]*(.*)$")
CALLOUT_PREFIX = re.compile(r"^>\s?")

# A `---` line, possibly surrounded by blank lines
SEPARATOR_PATTERN = re.compile(r"\n\s*---\s*\n")


def _speaker_name(marker: str) -> str:
    return SPEAKER_ANNOTATION.sub("", marker, count=1).strip()


def detect_conversation(content: str, frontmatter: dict[str, Any]) -> ConversationMetadata:
    """Classify a note as an AI conversation export.

    Any one of these signals marks the note as a conversation:
    - front matter ``source`` naming a known assistant
    - a ``conversation`` or ``research`` tag
    - a known assistant name used as a tag
    - a known assistant speaking in a role marker
    - at least two role markers, one from ``User`` and one from someone else

    Callouts are reported whether or not the note is a conversation.

    Args:
        content: Raw note text.
        frontmatter: Parsed front matter.

    Returns:
        ConversationMetadata with counts, speakers and callout types.
    """
    result = ConversationMetadata()

    declared_source = frontmatter.get("source")
    if isinstance(declared_source, str) and declared_source in KNOWN_SOURCES:
        result.source = KNOWN_SOURCES[declared_source]
        result.is_conversation = True

    tags = extract_tags(content, frontmatter)
    if any(tag in CONVERSATION_TAGS for tag in tags):
        result.is_conversation = True
    if result.source is None:
        for tag in tags:
            if tag in SOURCE_TAGS:
                result.source = SOURCE_TAGS[tag]
                result.is_conversation = True
                break

    speakers: list[str] = []
    for match in ROLE_MARKER_PATTERN.finditer(content):
        speaker = _speaker_name(match.group(1))
        if speaker not in speakers:
            speakers.append(speaker)
        result.message_count += 1
        if speaker == USER_SPEAKER:
            result.user_message_count += 1
        else:
            result.assistant_message_count += 1
    result.speakers = speakers

    if result.source is None:
        for speaker in speakers:
            if speaker in KNOWN_SOURCES:
                result.source = KNOWN_SOURCES[speaker]
                result.is_conversation = True
                break

    callout_types: list[str] = []
    for match in CALLOUT_MARKER_PATTERN.finditer(content):
        callout_type = match.group(1).upper()
        if callout_type not in callout_types:
            callout_types.append(callout_type)
    result.has_callouts = bool(callout_types)
    result.callout_types = callout_types

    if result.message_count >= 2 and USER_SPEAKER in speakers and len(speakers) >= 2:
        result.is_conversation = True

    return result


def extract_callouts(text: str) -> list[ConversationCallout]:
    """Extract ``> [!TYPE] Title`` blocks and their contiguous ``>`` lines.

    The ``>`` prefix (and one following space) is stripped from content lines.
    """
    callouts: list[ConversationCallout] = []
    lines = text.split("\n")
    index = 0
    while index < len(lines):
        header = CALLOUT_HEADER_PATTERN.match(lines[index])
        index += 1
        if not header:
            continue

        body: list[str] = []
        while index < len(lines) and lines[index].startswith(">"):
            if CALLOUT_HEADER_PATTERN.match(lines[index]):
                break
            body.append(CALLOUT_PREFIX.sub("", lines[index], count=1))
            index += 1

        callouts.append(
            ConversationCallout(
                type=header.group(1).upper(),
                title=header.group(2).strip(),
                content="\n".join(body).strip(),
            )
        )
    return callouts


def parse_conversation_messages(body: str) -> list[ConversationMessage]:
    """Split a conversation body into speaker-attributed messages.

    Sections are separated by ``---`` lines. A section that does not start
    with a role marker (preamble, empty sections) is dropped. The role is
    ``user`` only for the exact speaker ``User``.

    Args:
        body: Note body with front matter already removed.

    Returns:
        Messages in document order.
    """
    messages: list[ConversationMessage] = []

    for section in SEPARATOR_PATTERN.split(body):
        trimmed = section.strip()
        if not trimmed:
            continue

        match = MESSAGE_PATTERN.match(trimmed)
        if not match:
            continue

        speaker = _speaker_name(match.group(1))
        content = match.group(2).strip()
        messages.append(
            ConversationMessage(
                role="user" if speaker == USER_SPEAKER else "assistant",
                speaker=speaker,
                content=content,
                callouts=extract_callouts(content),
            )
        )

    return messages
