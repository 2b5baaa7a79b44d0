"""Streaming exchange decoding and session control.

Turns the upstream's resent, percent-encoded snapshots into one steadily
growing message with a reasoning trace and a final answer.

Responsibilities:
    - Growth-guarded reasoning/answer section state
    - Phase-based display composition with elapsed-time header
    - Per-exchange decoder owning accumulated payload and sections
    - Elapsed-time ticker while reasoning runs
    - Single-writer controller with terminal state handling

Keeps no global state. Settings, clock and sinks are passed in explicitly.
"""

from src.streaming.compose import Display, Phase, compose_display, split_sections
from src.streaming.config import DisplayLabels, StreamSettings, get_stream_settings
from src.streaming.controller import ExchangeState, MessageSink, StreamSessionController
from src.streaming.decoder import StreamDecoder
from src.streaming.errors import TransportError
from src.streaming.sections import ReduceResult, SectionState, apply_literal, reduce_items
from src.streaming.ticker import ElapsedTicker

__all__ = [
    "Display",
    "DisplayLabels",
    "ElapsedTicker",
    "ExchangeState",
    "MessageSink",
    "Phase",
    "ReduceResult",
    "SectionState",
    "StreamDecoder",
    "StreamSessionController",
    "StreamSettings",
    "TransportError",
    "apply_literal",
    "compose_display",
    "get_stream_settings",
    "reduce_items",
    "split_sections",
]
