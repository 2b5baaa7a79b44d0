"""Display composition for a streamed two-part message."""

from enum import Enum

from pydantic import BaseModel

from src.streaming.config import DisplayLabels
from src.streaming.sections import SectionState


class Phase(str, Enum):
    """Display phase of an exchange."""

    PROCESSING = "processing"
    THINKING = "thinking"
    REASONING_DONE = "reasoning_done"
    ANSWERING = "answering"
    LITERAL = "literal"
    FAILED = "failed"


class Display(BaseModel):
    """Composed message content.

    Attributes:
        content: Markdown shown for the message.
        is_loading: Whether the message is still being produced.
        phase: Phase the content was composed in.
    """

    content: str
    is_loading: bool
    phase: Phase


def _quote(text: str) -> str:
    lines = text.strip().splitlines() or [""]
    return "\n".join(f"> {line}" if line.strip() else ">" for line in lines)


def _reasoning_block(header: str, text: str) -> str:
    if not text.strip():
        return _quote(header)
    return f"{_quote(header)}\n>\n{_quote(text)}"


def compose_display(
    state: SectionState,
    *,
    elapsed_seconds: float,
    terminal: bool = False,
    labels: DisplayLabels | None = None,
) -> Display:
    """Compose the display string for the current section state.

    Args:
        state: Current section state.
        elapsed_seconds: Seconds spent reasoning so far (frozen once done).
        terminal: Whether the terminal marker has been seen.
        labels: Display strings; defaults are used when omitted.

    Returns:
        The composed Display.
    """
    labels = labels or DisplayLabels()
    seconds = max(0, int(elapsed_seconds))

    if state.answering_started and state.answer_text:
        answer = state.answer_text.strip()
        if state.reasoning_text:
            elapsed = state.elapsed_hint or f"{seconds}s"
            block = _reasoning_block(labels.reasoning.format(elapsed=elapsed), state.reasoning_text)
            content = f"{block}{labels.separator}{answer}"
        else:
            content = answer
        return Display(content=content, is_loading=not terminal, phase=Phase.ANSWERING)

    if state.reasoning_text and not state.reasoning_done:
        block = _reasoning_block(labels.thinking.format(elapsed=seconds), state.reasoning_text)
        return Display(content=block, is_loading=True, phase=Phase.THINKING)

    if state.reasoning_done and not state.answer_text:
        elapsed = state.elapsed_hint or f"{seconds}s"
        block = _reasoning_block(labels.reasoning.format(elapsed=elapsed), state.reasoning_text)
        content = f"{block}{labels.separator}{labels.generating}"
        return Display(content=content, is_loading=True, phase=Phase.REASONING_DONE)

    if state.literal_text:
        return Display(content=state.literal_text, is_loading=not terminal, phase=Phase.LITERAL)

    placeholder = labels.empty if terminal else labels.processing
    return Display(content=placeholder, is_loading=True, phase=Phase.PROCESSING)


def split_sections(content: str, labels: DisplayLabels | None = None) -> tuple[str | None, str]:
    """Split composed content into its reasoning block and answer.

    Renderers use this to style the quoted reasoning apart from the answer.
    The reasoning block never contains a blank line, so the first separator
    always belongs to the composer.

    Returns:
        ``(reasoning_block, answer)``; reasoning_block is None when absent.
    """
    labels = labels or DisplayLabels()
    head, separator, tail = content.partition(labels.separator)
    if separator and head.startswith(">"):
        return head, tail
    if content.startswith(">") and not separator:
        return content, ""
    return None, content
