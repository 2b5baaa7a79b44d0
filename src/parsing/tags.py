"""Wrapper-tag extraction over the accumulated payload."""

import re
from functools import lru_cache

DEFAULT_WRAPPER_TAG = "markdown"


@lru_cache(maxsize=8)
def _tag_pattern(tag: str) -> re.Pattern[str]:
    name = re.escape(tag)
    return re.compile(rf"<{name}>([^<]*)</{name}>")


def find_latest_tag(
    accumulated: str,
    tag: str = DEFAULT_WRAPPER_TAG,
    start: int = 0,
) -> tuple[str, int] | None:
    """Find the last complete ``<tag>...</tag>`` at or after ``start``.

    Tags never nest, so a caller that remembers the returned end offset can
    resume scanning there and still see every newer snapshot.

    Returns:
        ``(body, end_offset)`` of the most recent complete tag, or None.
    """
    latest = None
    for match in _tag_pattern(tag).finditer(accumulated, start):
        latest = match
    if latest is None:
        return None
    return latest.group(1), latest.end()


def extract_latest_tag(accumulated: str, tag: str = DEFAULT_WRAPPER_TAG) -> str | None:
    """Return the body of the last complete ``<tag>...</tag>`` in accumulated text.

    The upstream resends the whole payload-so-far inside a fresh tag on every
    update, so earlier occurrences are stale snapshots.

    Args:
        accumulated: All payload text received so far in the exchange.
        tag: Wrapper tag name.

    Returns:
        The body of the most recent complete tag, or None if none is complete.
    """
    found = find_latest_tag(accumulated, tag)
    return found[0] if found else None
