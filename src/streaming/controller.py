"""Session controller that drives one streamed exchange.

Owns the decoder for one outbound message and is the single writer of its
state. A reader task and the elapsed-time ticker only post messages to an
inbox; the controller loop applies them one at a time, in arrival order, and
forwards the results to the message sink.

State machine::

    IDLE -> STREAMING -> COMPLETE | ERRORED
                      -> CANCELLED (caller aborted the exchange)

COMPLETE and ERRORED call ``on_terminal`` exactly once. CANCELLED writes
nothing further.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterable, Callable
from enum import Enum
from typing import Any, Protocol

from src.streaming.compose import Display
from src.streaming.config import StreamSettings, get_stream_settings
from src.streaming.decoder import StreamDecoder
from src.streaming.ticker import ElapsedTicker

logger = logging.getLogger(__name__)

InboxMessage = tuple[str, Any]


class ExchangeState(str, Enum):
    """Lifecycle of one exchange."""

    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERRORED = "errored"
    CANCELLED = "cancelled"


class MessageSink(Protocol):
    """Receiver of display updates for the message being streamed."""

    def on_update(self, message_id: str, content: str, is_loading: bool) -> None: ...

    def on_terminal(self, message_id: str, final_content: str) -> None: ...


class StreamSessionController:
    """Drives a StreamDecoder from a fragment source into a MessageSink."""

    def __init__(
        self,
        sink: MessageSink,
        message_id: str,
        *,
        settings: StreamSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        decoder: StreamDecoder | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            sink: Receives updates and the terminal content.
            message_id: Id of the assistant placeholder message.
            settings: Stream settings. Loads from environment if not provided.
            clock: Monotonic clock in seconds, injectable for tests.
            decoder: Fresh decoder to drive; built from settings and clock
                when omitted.
        """
        self._sink = sink
        self._message_id = message_id
        self._settings = settings or get_stream_settings()
        self._decoder = decoder or StreamDecoder(self._settings, clock)
        self._state = ExchangeState.IDLE
        self._started = False

    @property
    def state(self) -> ExchangeState:
        return self._state

    @property
    def message_id(self) -> str:
        return self._message_id

    @property
    def decoder(self) -> StreamDecoder:
        return self._decoder

    async def run(self, fragments: AsyncIterable[str]) -> Display:
        """Consume the fragment source until the exchange ends.

        Args:
            fragments: Ordered text fragments for this exchange.

        Returns:
            The final Display passed to ``on_terminal``.

        Raises:
            asyncio.CancelledError: If the exchange was aborted; the sink
                receives no further calls.
        """
        if self._started:
            raise RuntimeError("A controller drives a single exchange")
        self._started = True

        inbox: asyncio.Queue[InboxMessage] = asyncio.Queue()
        ticker = ElapsedTicker(
            self._settings.tick_interval,
            lambda: inbox.put_nowait(("tick", None)),
        )
        reader = asyncio.create_task(self._pump(fragments, inbox), name="stream-reader")
        ticker.start()

        try:
            return await self._consume(inbox, ticker)
        except asyncio.CancelledError:
            self._state = ExchangeState.CANCELLED
            logger.info(f"Exchange for message {self._message_id} cancelled")
            raise
        finally:
            ticker.stop()
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)

    async def _pump(self, fragments: AsyncIterable[str], inbox: asyncio.Queue[InboxMessage]) -> None:
        try:
            async for fragment in fragments:
                await inbox.put(("data", fragment))
        except Exception as e:
            logger.warning(f"Stream read failed for message {self._message_id}: {e}")
            await inbox.put(("error", e))
            return
        await inbox.put(("end", None))

    async def _consume(self, inbox: asyncio.Queue[InboxMessage], ticker: ElapsedTicker) -> Display:
        while True:
            kind, payload = await inbox.get()

            if kind == "tick":
                self._publish(self._decoder.refresh())
                continue
            if kind == "error":
                return self._fail(payload)
            if kind == "end":
                return self._complete()

            if self._state is ExchangeState.IDLE:
                self._state = ExchangeState.STREAMING
                logger.debug(f"Exchange for message {self._message_id} streaming")

            try:
                display = self._decoder.feed(payload)
            except Exception as e:
                return self._fail(e)

            self._publish(display)
            if self._decoder.reasoning_settled:
                ticker.stop()
            if self._decoder.terminal_seen:
                return self._complete()

    def _publish(self, display: Display | None) -> None:
        if display is None:
            return
        self._sink.on_update(self._message_id, display.content, display.is_loading)

    def _complete(self) -> Display:
        try:
            final = self._decoder.finish()
        except Exception as e:
            return self._fail(e)
        self._state = ExchangeState.COMPLETE
        logger.info(f"Exchange for message {self._message_id} complete ({final.phase.value})")
        self._sink.on_terminal(self._message_id, final.content)
        return final

    def _fail(self, error: BaseException) -> Display:
        final = self._decoder.fail()
        self._state = ExchangeState.ERRORED
        logger.error(f"Exchange for message {self._message_id} failed: {error}")
        self._sink.on_terminal(self._message_id, final.content)
        return final
