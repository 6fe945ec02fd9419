"""Signal extraction from raw note text."""

from .conversation import detect_conversation, extract_callouts, parse_conversation_messages
from .links import (
    extract_embeds,
    extract_inline_fields,
    extract_links,
    extract_tags,
    normalize_tag,
)

__all__ = [
    "detect_conversation",
    "extract_callouts",
    "parse_conversation_messages",
    "extract_embeds",
    "extract_inline_fields",
    "extract_links",
    "extract_tags",
    "normalize_tag",
]
