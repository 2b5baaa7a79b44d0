"""httpx client for the upstream chat service.

The upstream exposes two calls this project needs:

1. **generate** - creates a chat session and returns its id inside a
   ``{code, msg, data}`` envelope.

2. **sendMsg** - streams the answer for one message. An upstream that already
   speaks SSE is passed through unchanged; otherwise every chunk is wrapped
   as a ``data: <chunk>`` frame. A terminal marker frame is appended when the
   upstream closes the stream normally.

Auth tokens are passed per call and never stored.
"""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

import httpx

from src.client.config import UpstreamConfig, get_upstream_config
from src.models.schemas import UpstreamEnvelope
from src.parsing.frames import DEFAULT_TERMINAL_MARKER
from src.streaming.errors import TransportError

logger = logging.getLogger(__name__)


class UpstreamAPIError(Exception):
    """Raised when a non-streaming upstream call fails."""

    pass


def _is_sse(chunk: str) -> bool:
    return chunk.lstrip().startswith("data:")


class UpstreamClient:
    """Client for the upstream chat service.

    Wraps httpx with:
    - Envelope unwrapping for session creation
    - SSE framing and end marker for streamed answers
    - Transport failures surfaced as TransportError
    """

    def __init__(
        self,
        config: UpstreamConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the upstream client.

        Args:
            config: Optional upstream configuration.
                    Loads from environment if not provided.
            client: Optional shared httpx client; a short-lived client is
                    opened per call when omitted.
        """
        self._config = config or get_upstream_config()
        self._client = client

    @property
    def config(self) -> UpstreamConfig:
        return self._config

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._config.timeout) as client:
            yield client

    def _headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    async def create_chat(self, token: str) -> str:
        """Create an upstream chat session.

        Args:
            token: Bearer token of the caller.

        Returns:
            The session id issued by the upstream.

        Raises:
            UpstreamAPIError: On HTTP, connection, or envelope errors.
        """
        url = f"{self._config.base_url}/geoChat/generate"
        try:
            async with self._http() as client:
                response = await client.get(url, headers=self._headers(token))
                response.raise_for_status()
                envelope = UpstreamEnvelope[str].model_validate(response.json())
        except httpx.HTTPStatusError as e:
            raise UpstreamAPIError(f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise UpstreamAPIError(f"Connection failed: {e}") from e
        except ValueError as e:
            raise UpstreamAPIError(f"Malformed upstream response: {e}") from e

        if not envelope.ok or not envelope.data:
            raise UpstreamAPIError(envelope.msg or f"Upstream error code {envelope.code}")

        logger.info(f"Created upstream chat session {envelope.data}")
        return envelope.data

    async def stream_message(
        self,
        text: str,
        session_id: str,
        token: str,
        *,
        model: str | None = None,
        use_rag: bool | None = None,
        use_common_rag: bool | None = None,
        terminal_marker: str = DEFAULT_TERMINAL_MARKER,
    ) -> AsyncGenerator[str, None]:
        """Stream the answer to one message as SSE-framed text.

        Args:
            text: The user's message.
            session_id: Upstream session id.
            token: Bearer token of the caller.
            model: Model to answer with.
            use_rag: Whether to search the caller's own knowledge base.
            use_common_rag: Whether to search the shared knowledge base.
            terminal_marker: Marker frame appended on normal close.

        Yields:
            SSE-framed text fragments, ending with the terminal marker frame.

        Raises:
            TransportError: On HTTP status or connection failures.
        """
        body: dict[str, object] = {"text": text, "sessionId": session_id}
        if model:
            body["module"] = model
        if use_rag is not None:
            body["isRAG"] = use_rag
        if use_common_rag is not None:
            body["isRAGCommon"] = use_common_rag

        url = f"{self._config.base_url}/geoChat/sendMsg"
        try:
            async with self._http() as client:
                async with client.stream(
                    "POST",
                    url,
                    json=body,
                    headers={**self._headers(token), "Accept": "text/event-stream"},
                ) as response:
                    response.raise_for_status()
                    # Decided by the first chunk; SSE frames may split anywhere after it
                    passthrough: bool | None = None
                    async for chunk in response.aiter_text():
                        if not chunk:
                            continue
                        if passthrough is None:
                            passthrough = _is_sse(chunk)
                        yield chunk if passthrough else f"data: {chunk}\n\n"
        except httpx.HTTPStatusError as e:
            raise TransportError(f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise TransportError(f"Connection failed: {e}") from e

        # Leading blank line closes a final upstream frame that lacked one
        yield f"\n\ndata: {terminal_marker}\n\n"


# Module-level singleton instance
_upstream_client: UpstreamClient | None = None


def get_upstream_client() -> UpstreamClient:
    """Get or create the global upstream client.

    Returns:
        The UpstreamClient instance.
    """
    global _upstream_client
    if _upstream_client is None:
        _upstream_client = UpstreamClient()
    return _upstream_client
