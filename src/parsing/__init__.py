"""Parsing utilities for the upstream chat event stream.

Transforms raw streamed text into structured snapshot payloads.

Responsibilities:
    - Frame splitting on blank lines with a carry-over tail
    - ``data:`` prefix stripping and terminal marker detection
    - Latest wrapper-tag extraction from the accumulated payload
    - Defensive, bounded percent-decoding
    - JSON item classification with literal-text fallback

Nothing here raises on malformed or incomplete input; callers receive None
and retry on the next, more complete snapshot.
"""

from src.parsing.encoding import has_incomplete_escape, normalize_escapes, percent_decode
from src.parsing.frames import (
    FrameEvent,
    FrameEventKind,
    FrameReader,
    find_terminal_marker,
    normalize_frame,
)
from src.parsing.payload import (
    AnswerItem,
    Classified,
    ItemsPayload,
    LiteralPayload,
    ReasoningItem,
    classify_payload,
)
from src.parsing.tags import extract_latest_tag, find_latest_tag

__all__ = [
    "AnswerItem",
    "Classified",
    "FrameEvent",
    "FrameEventKind",
    "FrameReader",
    "ItemsPayload",
    "LiteralPayload",
    "ReasoningItem",
    "classify_payload",
    "extract_latest_tag",
    "find_latest_tag",
    "find_terminal_marker",
    "has_incomplete_escape",
    "normalize_escapes",
    "normalize_frame",
    "percent_decode",
]
