"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - test_data_dir: Path to recorded upstream streams
    - stream_settings: Deterministic stream settings
    - upstream_config: Upstream configuration pointing at a fake host
    - clock: Manually advanced monotonic clock
    - session_store: Empty in-memory session store
    - async_client: HTTPX client for API testing
"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from src.api import app
from src.client.config import UpstreamConfig
from src.session.store import SessionStore
from src.streaming.config import StreamSettings

FAILURE_MESSAGE = "Sorry, something went wrong."


class FakeClock:
    """Monotonic clock that only moves when a test moves it."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_data_dir() -> Path:
    """Return path to test data directory.

    Returns:
        Absolute path to tests/data/ directory.
    """
    return Path(__file__).parent / "data"


@pytest.fixture
def stream_settings() -> StreamSettings:
    """Stream settings independent of the environment."""
    return StreamSettings(
        wrapper_tag="markdown",
        terminal_marker="<end></end>",
        tick_interval=0.01,
        max_decode_rounds=3,
        failure_message=FAILURE_MESSAGE,
    )


@pytest.fixture
def upstream_config() -> UpstreamConfig:
    """Upstream configuration for a fake host."""
    return UpstreamConfig(
        base_url="http://upstream.test/api",
        timeout=5.0,
        models=["model-a", "model-b"],
        default_model="model-a",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore()


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
