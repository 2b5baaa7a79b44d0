"""Frame reading and normalization for the upstream event stream.

Text fragments arrive in order but with arbitrary boundaries. The reader cuts
them into frames on blank lines, and the normalizer turns each frame into a
typed event with the ``data:`` transport prefix removed.
"""

import json
import logging
import re
from enum import Enum

from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Constants
FRAME_DELIMITER = "\n\n"
DEFAULT_TERMINAL_MARKER = "<end></end>"

_DATA_PREFIX_RE = re.compile(r"^data:[ \t]?")


class FrameReader:
    """Splits a continuous text stream into blank-line delimited frames.

    The last, possibly unterminated piece is carried over to the next read so
    a logical event is never split across two frames.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received but not yet delimited."""
        return self._buffer

    def feed(self, fragment: str) -> list[str]:
        """Append a fragment and return every fully delimited frame."""
        if not fragment:
            return []
        self._buffer = (self._buffer + fragment).replace("\r\n", "\n")
        *frames, self._buffer = self._buffer.split(FRAME_DELIMITER)
        return frames

    def flush(self) -> list[str]:
        """Return the carried-over tail as a final frame at stream end."""
        tail, self._buffer = self._buffer, ""
        return [tail] if tail else []


class FrameEventKind(str, Enum):
    """Kinds of events a normalized frame can carry."""

    TEXT = "text"
    CONTENT = "content"
    ERROR = "error"
    TERMINAL = "terminal"


class FrameEvent(BaseModel):
    """A normalized frame.

    Attributes:
        kind: What the frame carries.
        text: Payload text (snapshot text, direct content or error message).
    """

    kind: FrameEventKind
    text: str = ""


def _strip_prefix(frame: str) -> str:
    # Only line breaks are trimmed; spaces may be payload split across chunks
    return _DATA_PREFIX_RE.sub("", frame.strip("\r\n"), count=1)


def _strip_quotes(text: str) -> str:
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


def normalize_frame(
    frame: str,
    terminal_marker: str = DEFAULT_TERMINAL_MARKER,
) -> FrameEvent | None:
    """Normalize one raw frame into a FrameEvent.

    Args:
        frame: Raw frame text as produced by FrameReader.
        terminal_marker: Sentinel that ends the exchange.

    Returns:
        The event, or None for empty/whitespace frames.
    """
    payload = _strip_prefix(frame)
    stripped = payload.strip()
    if not stripped:
        return None

    if stripped == terminal_marker:
        return FrameEvent(kind=FrameEventKind.TERMINAL)

    if stripped[0] not in '"{':
        return FrameEvent(kind=FrameEventKind.TEXT, text=payload)

    try:
        data = json.loads(stripped)
    except ValueError:
        # Covers JSONDecodeError and over-long integer literals
        return FrameEvent(kind=FrameEventKind.TEXT, text=_strip_quotes(stripped))

    if isinstance(data, str):
        return FrameEvent(kind=FrameEventKind.TEXT, text=data)

    if isinstance(data, dict):
        if data.get("error"):
            message = str(data.get("message") or "Upstream stream error")
            logger.warning(f"Relay reported stream error: {message}")
            return FrameEvent(kind=FrameEventKind.ERROR, text=message)
        if isinstance(data.get("content"), str):
            return FrameEvent(kind=FrameEventKind.CONTENT, text=data["content"])

    return FrameEvent(kind=FrameEventKind.TEXT, text=payload)


def find_terminal_marker(text: str, marker: str = DEFAULT_TERMINAL_MARKER) -> int:
    """Return the index just past the terminal marker in text, or -1."""
    index = text.find(marker)
    if index == -1:
        return -1
    return index + len(marker)
