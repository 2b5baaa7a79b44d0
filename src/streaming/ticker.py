"""Fixed-interval timer that requests elapsed-time refreshes."""

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class ElapsedTicker:
    """Calls ``on_tick`` every ``interval`` seconds until stopped.

    The callback only submits a refresh request; it must not touch decoder
    state itself.
    """

    def __init__(self, interval: float, on_tick: Callable[[], None]) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._on_tick = on_tick
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking on the running event loop. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="elapsed-ticker")

    def stop(self) -> None:
        """Cancel the timer. Safe to call more than once."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._on_tick()
