"""Growth-guarded section state for one streamed exchange.

The upstream resends the whole payload on every update, and resends of an
in-progress payload can race with later, more complete ones. Each section
therefore only ever grows: a candidate that is not longer than the stored
text is discarded.
"""

import logging
from collections.abc import Iterable

from pydantic import BaseModel

from src.parsing.encoding import normalize_escapes
from src.parsing.payload import AnswerItem, ReasoningItem

logger = logging.getLogger(__name__)


class SectionState(BaseModel):
    """Authoritative section text for one exchange.

    Attributes:
        reasoning_text: Longest reasoning text seen so far.
        answer_text: Longest answer text seen so far.
        literal_text: Longest non-JSON snapshot text seen so far.
        reasoning_done: Whether the upstream marked reasoning as finished.
        answering_started: Whether any answer text has been applied.
        elapsed_hint: Latest elapsed-time label sent by the upstream.
    """

    reasoning_text: str = ""
    answer_text: str = ""
    literal_text: str = ""
    reasoning_done: bool = False
    answering_started: bool = False
    elapsed_hint: str | None = None


class ReduceResult(BaseModel):
    """What changed while reducing one snapshot."""

    reasoning_grew: bool = False
    answer_grew: bool = False
    reasoning_finished: bool = False

    @property
    def changed(self) -> bool:
        return self.reasoning_grew or self.answer_grew or self.reasoning_finished


def _grows(current: str, candidate: str, section: str) -> bool:
    if len(candidate) > len(current):
        return True
    if len(candidate) < len(current):
        logger.debug(
            f"Discarding shrinking {section} candidate ({len(candidate)} < {len(current)})"
        )
    return False


def reduce_items(
    state: SectionState,
    items: Iterable[ReasoningItem | AnswerItem],
) -> ReduceResult:
    """Merge decoded items into the section state, in order.

    Args:
        state: Section state to update in place.
        items: Items from the latest snapshot.

    Returns:
        ReduceResult describing which sections changed.
    """
    result = ReduceResult()

    for item in items:
        if isinstance(item, ReasoningItem):
            text = normalize_escapes(item.text)
            if _grows(state.reasoning_text, text, "reasoning"):
                state.reasoning_text = text
                result.reasoning_grew = True
            if item.elapsed_hint:
                state.elapsed_hint = item.elapsed_hint
            if item.done and not state.reasoning_done:
                state.reasoning_done = True
                result.reasoning_finished = True
        elif isinstance(item, AnswerItem):
            text = normalize_escapes(item.text)
            if _grows(state.answer_text, text, "answer"):
                state.answer_text = text
                state.answering_started = True
                result.answer_grew = True

    return result


def apply_literal(state: SectionState, text: str) -> bool:
    """Apply a literal-text snapshot under the same growth rule.

    Returns:
        True if the literal text was replaced.
    """
    text = normalize_escapes(text)
    if _grows(state.literal_text, text, "literal"):
        state.literal_text = text
        return True
    return False
