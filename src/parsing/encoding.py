"""Percent-decoding helpers for upstream snapshot payloads.

The upstream service percent-encodes its payload, sometimes more than once,
and a snapshot can be cut in the middle of an escape sequence. Decoding here
never raises: an incomplete snapshot is reported as ``None`` so the caller can
wait for the next, more complete one.
"""

import logging
import re
from collections.abc import Callable
from urllib.parse import unquote

logger = logging.getLogger(__name__)

# Constants
DEFAULT_MAX_ROUNDS = 3

_INCOMPLETE_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")

# Used only when strict decoding breaks after the first round
_COMMON_ESCAPES = {
    "%20": " ",
    "%21": "!",
    "%22": '"',
    "%23": "#",
    "%26": "&",
    "%27": "'",
    "%28": "(",
    "%29": ")",
    "%2C": ",",
    "%2F": "/",
    "%3A": ":",
    "%3B": ";",
    "%3D": "=",
    "%3F": "?",
    "%40": "@",
    "%5B": "[",
    "%5D": "]",
    "%7B": "{",
    "%7D": "}",
}
_COMMON_ESCAPE_RE = re.compile(
    "|".join(re.escape(k) for k in [*_COMMON_ESCAPES, "%25"]), re.IGNORECASE
)


def has_incomplete_escape(text: str) -> bool:
    """Return True if any ``%`` is not followed by two hex digits."""
    return _INCOMPLETE_ESCAPE_RE.search(text) is not None


def _decode_once(text: str) -> str:
    return unquote(text, encoding="utf-8", errors="strict")


def _substitute_common(text: str) -> str:
    """Replace a fixed table of escaped punctuation, leaving everything else."""

    def _replace(match: re.Match[str]) -> str:
        key = match.group(0).upper()
        if key == "%25":
            return "%"
        return _COMMON_ESCAPES[key]

    return _COMMON_ESCAPE_RE.sub(_replace, text)


def percent_decode(
    text: str,
    *,
    max_rounds: int = DEFAULT_MAX_ROUNDS,
    until: Callable[[str], bool] | None = None,
) -> str | None:
    """Decode percent-escaped text, repeating for nested encodings.

    Args:
        text: Raw percent-encoded text.
        max_rounds: Upper bound on decode passes.
        until: Optional predicate; decoding stops once it holds.

    Returns:
        The decoded text, or None when the input is demonstrably incomplete
        (a cut escape or a multi-byte character split between escapes).
    """
    if has_incomplete_escape(text):
        logger.debug("Withholding snapshot with incomplete percent escape")
        return None

    try:
        decoded = _decode_once(text)
    except UnicodeDecodeError:
        logger.debug("Withholding snapshot with truncated UTF-8 sequence")
        return None

    for _ in range(max_rounds - 1):
        if until is not None and until(decoded):
            break
        # A bare percent sign here is content, not another encoding layer
        if "%" not in decoded or has_incomplete_escape(decoded):
            break
        try:
            next_round = _decode_once(decoded)
        except UnicodeDecodeError:
            logger.debug("Nested decode failed, substituting common escapes")
            decoded = _substitute_common(decoded)
            break
        if next_round == decoded:
            break
        decoded = next_round

    return decoded


def normalize_escapes(text: str) -> str:
    """Turn literal ``\\n`` and ``\\t`` escape sequences into real characters."""
    return text.replace("\\r\\n", "\n").replace("\\n", "\n").replace("\\t", "\t")
