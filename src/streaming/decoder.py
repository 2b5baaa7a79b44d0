"""Incremental decoder for one streamed exchange.

Turns raw text fragments into a continuously updated two-part message.

How it works:

1. **Frames** - fragments are cut on blank lines; the unterminated tail is
   carried to the next read. The terminal marker is searched in the raw text
   across fragment boundaries, and nothing after it is consumed.

2. **Snapshot reconciliation** - the upstream resends the whole payload so far
   inside a wrapper tag on every update. Frame payloads are appended to one
   accumulated text and only the latest complete tag is ever decoded.

3. **Growth guard** - reasoning and answer text only ever grow, so the
   displayed message never flickers back to an older snapshot.

The decoder is synchronous and owns all of its state. It is not shared across
exchanges and needs no locking; the session controller serializes access.
"""

import logging
import time
from collections.abc import Callable

from src.parsing.frames import FrameEventKind, FrameReader, find_terminal_marker, normalize_frame
from src.parsing.payload import LiteralPayload, classify_payload
from src.parsing.tags import find_latest_tag
from src.streaming.compose import Display, Phase, compose_display
from src.streaming.config import StreamSettings, get_stream_settings
from src.streaming.errors import TransportError
from src.streaming.sections import SectionState, apply_literal, reduce_items

logger = logging.getLogger(__name__)


class StreamDecoder:
    """Decoder state for a single exchange.

    Every mutating call returns the newly composed Display when the visible
    content or loading flag changed, and None otherwise.
    """

    def __init__(
        self,
        settings: StreamSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the decoder.

        Args:
            settings: Stream settings. Loads from environment if not provided.
            clock: Monotonic clock in seconds, injectable for tests.
        """
        self._settings = settings or get_stream_settings()
        self._clock = clock
        self._started_at = clock()
        self._reasoning_stopped_at: float | None = None

        self._reader = FrameReader()
        self._payload = ""
        self._scan_offset = 0
        self._marker_tail = ""

        self._state = SectionState()
        self._terminal = False
        self._closed = False
        self._failed = False
        self._last: Display | None = None

    @property
    def state(self) -> SectionState:
        return self._state

    @property
    def payload(self) -> str:
        """All payload text accumulated in this exchange."""
        return self._payload

    @property
    def terminal_seen(self) -> bool:
        return self._terminal

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def failed(self) -> bool:
        return self._failed

    @property
    def reasoning_settled(self) -> bool:
        """True once elapsed-time refreshes can no longer change the display."""
        return self._state.reasoning_done or self._state.answering_started

    def elapsed_seconds(self) -> float:
        """Seconds spent reasoning, frozen once reasoning settles."""
        end = self._reasoning_stopped_at
        if end is None:
            end = self._clock()
        return end - self._started_at

    def render(self) -> Display:
        """Compose the display for the current state without recording it."""
        if self._failed:
            return Display(
                content=self._settings.failure_message,
                is_loading=False,
                phase=Phase.FAILED,
            )
        return compose_display(
            self._state,
            elapsed_seconds=self.elapsed_seconds(),
            terminal=self._terminal,
            labels=self._settings.labels,
        )

    def feed(self, fragment: str) -> Display | None:
        """Consume one text fragment.

        Raises:
            TransportError: If the relay reported a stream failure.
        """
        if self._closed or self._terminal or not fragment:
            return None

        fragment, hit_marker = self._cut_at_marker(fragment)
        frames = self._reader.feed(fragment)
        if hit_marker:
            frames.extend(self._reader.flush())
            self._terminal = True

        for frame in frames:
            self._apply_frame(frame)

        return self._push()

    def refresh(self) -> Display | None:
        """Recompose for an elapsed-time tick; only the thinking phase changes."""
        if self._closed or self.render().phase is not Phase.THINKING:
            return None
        return self._push()

    def finish(self) -> Display:
        """Close the exchange and return the final display.

        Called on natural end of stream or after the terminal marker.

        Raises:
            TransportError: If the flushed tail was a relay error frame.
        """
        if not self._closed:
            for frame in self._reader.flush():
                self._apply_frame(frame)
            self._terminal = True
            self._closed = True
            self._freeze_elapsed()

        final = self.render().model_copy(update={"is_loading": False})
        self._last = final
        return final

    def fail(self) -> Display:
        """Close the exchange after a transport failure.

        Partial reasoning and answer text is discarded from the display.
        """
        self._closed = True
        self._failed = True
        final = self.render()
        self._last = final
        return final

    def _cut_at_marker(self, fragment: str) -> tuple[str, bool]:
        marker = self._settings.terminal_marker
        window = self._marker_tail + fragment
        end = find_terminal_marker(window, marker)
        if end == -1:
            keep = len(marker) - 1
            self._marker_tail = window[-keep:] if keep else ""
            return fragment, False
        return fragment[: end - len(self._marker_tail)], True

    def _apply_frame(self, frame: str) -> None:
        event = normalize_frame(frame, self._settings.terminal_marker)
        if event is None:
            return

        if event.kind is FrameEventKind.TERMINAL:
            self._terminal = True
        elif event.kind is FrameEventKind.ERROR:
            raise TransportError(event.text)
        elif event.kind is FrameEventKind.CONTENT:
            apply_literal(self._state, event.text)
        else:
            self._payload += event.text
            self._reconcile()

    def _reconcile(self) -> None:
        found = find_latest_tag(self._payload, self._settings.wrapper_tag, self._scan_offset)
        if found is None:
            return
        body, self._scan_offset = found

        classified = classify_payload(body, max_rounds=self._settings.max_decode_rounds)
        if classified is None:
            return

        if isinstance(classified, LiteralPayload):
            apply_literal(self._state, classified.text)
            return

        result = reduce_items(self._state, classified.items)
        if result.reasoning_finished or result.answer_grew:
            self._freeze_elapsed()

    def _freeze_elapsed(self) -> None:
        if self._reasoning_stopped_at is None:
            self._reasoning_stopped_at = self._clock()

    def _push(self) -> Display | None:
        display = self.render()
        last = self._last
        if last is not None and (last.content, last.is_loading) == (
            display.content,
            display.is_loading,
        ):
            return None
        self._last = display
        return display
