"""FastAPI application for the chat stream relay.

The lifespan checks upstream and decoding settings at startup; the chat
router carries the session and SSE streaming endpoints.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.chat import router as chat_router
from src.client.config import get_upstream_config
from src.streaming.config import get_stream_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Validate relay configuration before accepting requests.

    Misconfigured upstream or stream settings fail startup instead of the
    first exchange.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.

    Raises:
        ValidationError: If the environment holds invalid settings.
    """
    upstream = get_upstream_config()
    settings = get_stream_settings()
    logger.info(
        f"Relaying {upstream.base_url} (models: {', '.join(upstream.models)}, "
        f"default {upstream.default_model})"
    )
    logger.info(
        f"Decoding <{settings.wrapper_tag}> snapshots until {settings.terminal_marker!r}"
    )
    yield
    logger.info(f"Relay for {upstream.base_url} stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="Chat Stream Relay",
        description=(
            "Relays an upstream chat service whose streamed answers are full "
            "snapshots wrapped in markdown tags. Each message is decoded "
            "incrementally into a reasoning section and an answer section and "
            "re-streamed as Server-Sent Events."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.include_router(chat_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "chat-stream-relay"}

    return application


app = create_app()
