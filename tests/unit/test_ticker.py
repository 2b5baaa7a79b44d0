"""Unit tests for the elapsed-time ticker."""

import asyncio

import pytest
import pytest_check as check

from src.streaming.ticker import ElapsedTicker


class TestElapsedTicker:
    """Tests for periodic tick delivery."""

    async def test_ticks_until_stopped(self) -> None:
        ticks: list[int] = []
        ticker = ElapsedTicker(0.01, lambda: ticks.append(1))

        ticker.start()
        await asyncio.sleep(0.1)
        ticker.stop()
        count = len(ticks)
        await asyncio.sleep(0.05)

        check.greater_equal(count, 2)
        check.equal(len(ticks), count)
        check.is_false(ticker.running)

    async def test_start_is_idempotent(self) -> None:
        ticker = ElapsedTicker(1.0, lambda: None)

        ticker.start()
        first = ticker._task
        ticker.start()

        check.is_true(ticker.running)
        check.is_true(ticker._task is first)
        ticker.stop()

    def test_stop_before_start(self) -> None:
        ticker = ElapsedTicker(1.0, lambda: None)

        ticker.stop()

        check.is_false(ticker.running)

    @pytest.mark.parametrize("interval", [0, -1.0])
    def test_rejects_non_positive_interval(self, interval: float) -> None:
        with pytest.raises(ValueError, match="positive"):
            ElapsedTicker(interval, lambda: None)
