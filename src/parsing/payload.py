"""Payload classification for decoded snapshots.

A snapshot is either a JSON array of typed items (reasoning and answer
sections) or plain text. Anything that fails to parse as the former is shown
as literal text rather than dropped.
"""

import json
import logging
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from src.parsing.encoding import DEFAULT_MAX_ROUNDS, has_incomplete_escape, percent_decode

logger = logging.getLogger(__name__)

RUNNING_STATUS = "running"


# Upstream wire shapes


class ThinkingContent(BaseModel):
    """Inner record of an upstream ``Thinking`` item."""

    status: str = RUNNING_STATUS
    content: str = ""
    time: str | int | float | None = None


class ThinkingWireItem(BaseModel):
    type: Literal["Thinking"]
    content: ThinkingContent


class MarkDownWireItem(BaseModel):
    type: Literal["MarkDown"]
    content: str


_wire_item_adapter: TypeAdapter[ThinkingWireItem | MarkDownWireItem] = TypeAdapter(
    Annotated[ThinkingWireItem | MarkDownWireItem, Field(discriminator="type")]
)


# Decoded items


class ReasoningItem(BaseModel):
    """The model's intermediate rationale.

    Attributes:
        status: ``running`` while reasoning continues, anything else once done.
        text: Decoded reasoning text.
        elapsed_hint: Upstream-provided elapsed time label, if any.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["reasoning"] = "reasoning"
    status: str = RUNNING_STATUS
    text: str
    elapsed_hint: str | None = None

    @property
    def done(self) -> bool:
        return self.status != RUNNING_STATUS


class AnswerItem(BaseModel):
    """The final answer text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["answer"] = "answer"
    text: str


DecodedItem = Annotated[ReasoningItem | AnswerItem, Field(discriminator="kind")]


# Classification results


class ItemsPayload(BaseModel):
    """A snapshot that parsed into a list of items."""

    kind: Literal["items"] = "items"
    items: list[DecodedItem]


class LiteralPayload(BaseModel):
    """A snapshot shown as plain text."""

    kind: Literal["literal"] = "literal"
    text: str


Classified = ItemsPayload | LiteralPayload


def looks_like_json(text: str) -> bool:
    """Return True if trimmed text starts like a JSON array or object."""
    stripped = text.lstrip()
    return stripped.startswith(("[", "{"))


def _hint_label(value: str | int | float | None) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _decode_item(raw: Any, max_rounds: int) -> ReasoningItem | AnswerItem | None:
    try:
        wire = _wire_item_adapter.validate_python(raw)
    except ValidationError:
        logger.debug(f"Skipping unrecognized payload item: {raw!r:.80}")
        return None

    if isinstance(wire, ThinkingWireItem):
        text = percent_decode(wire.content.content, max_rounds=max_rounds)
        if text is None:
            return None
        return ReasoningItem(
            status=wire.content.status,
            text=text,
            elapsed_hint=_hint_label(wire.content.time),
        )

    text = percent_decode(wire.content, max_rounds=max_rounds)
    if text is None:
        return None
    return AnswerItem(text=text)


def classify_payload(
    snapshot: str,
    *,
    max_rounds: int = DEFAULT_MAX_ROUNDS,
) -> Classified | None:
    """Classify the latest snapshot body.

    Args:
        snapshot: Body of the most recent wrapper tag.
        max_rounds: Upper bound on percent-decode passes.

    Returns:
        ItemsPayload or LiteralPayload, or None when the snapshot is
        incomplete and should be skipped until the next update.
    """
    if has_incomplete_escape(snapshot):
        logger.debug("Snapshot has an incomplete escape, waiting for more data")
        return None

    if looks_like_json(snapshot):
        text = snapshot
    else:
        text = percent_decode(snapshot, max_rounds=max_rounds, until=looks_like_json)
        if text is None:
            return None

    if not looks_like_json(text):
        return LiteralPayload(text=text)

    try:
        parsed = json.loads(text)
    except ValueError as e:
        logger.debug(f"Snapshot is not valid JSON, showing as text: {e}")
        return LiteralPayload(text=text)

    if not isinstance(parsed, list):
        return LiteralPayload(text=text)

    items = [
        item for raw in parsed if (item := _decode_item(raw, max_rounds)) is not None
    ]
    return ItemsPayload(items=items)
