"""Chat session and streaming endpoints.

Sessions are created against the upstream service. Streaming requests run one
StreamSessionController per message and forward every composed update to the
caller as an SSE ``StreamChunk`` carrying the full message so far.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterable

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import StreamingResponse

from src.client.config import UpstreamConfig
from src.client.upstream import UpstreamAPIError, UpstreamClient, get_upstream_client
from src.models.schemas import (
    ChatRequest,
    CreateSessionRequest,
    Session,
    SessionSummary,
    StreamChunk,
    StreamStatus,
)
from src.session.store import SessionNotFoundError, SessionStore, get_session_store
from src.streaming.compose import Phase, split_sections
from src.streaming.config import DisplayLabels, StreamSettings, get_stream_settings
from src.streaming.controller import StreamSessionController
from src.streaming.decoder import StreamDecoder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

_PHASE_STATUS = {
    Phase.PROCESSING: StreamStatus.PROCESSING,
    Phase.THINKING: StreamStatus.THINKING,
    Phase.REASONING_DONE: StreamStatus.GENERATING,
    Phase.ANSWERING: StreamStatus.ANSWERING,
    Phase.LITERAL: StreamStatus.ANSWERING,
    Phase.FAILED: StreamStatus.ERROR,
}


def bearer_token(authorization: str | None = Header(default=None)) -> str:
    """Extract the caller's bearer token.

    Raises:
        HTTPException: 401 if the header is missing or malformed.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: No token provided",
        )
    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: No token provided",
        )
    return token


def _resolve_model(requested: str | None, config: UpstreamConfig) -> str:
    """Validate a requested model against the configured models.

    Raises:
        HTTPException: 422 if the model is unknown.
    """
    model = requested or config.default_model
    if model not in config.models:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=f"Unknown model '{model}'. Available: {', '.join(config.models)}",
        )
    return model


async def _create_upstream_session(client: UpstreamClient, token: str) -> str:
    try:
        return await client.create_chat(token)
    except UpstreamAPIError as e:
        logger.error(f"Failed to create upstream session: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to create chat session: {e}",
        ) from e


class _QueueSink:
    """Applies updates to the session store and queues them for the response."""

    def __init__(
        self,
        store: SessionStore,
        decoder: StreamDecoder,
        queue: asyncio.Queue[StreamChunk | None],
        labels: DisplayLabels,
    ) -> None:
        self._store = store
        self._decoder = decoder
        self._queue = queue
        self._labels = labels

    def on_update(self, message_id: str, content: str, is_loading: bool) -> None:
        self._store.on_update(message_id, content, is_loading)
        reasoning, answer = split_sections(content, self._labels)
        self._queue.put_nowait(
            StreamChunk(
                content=content,
                done=False,
                status=_PHASE_STATUS[self._decoder.render().phase],
                message_id=message_id,
                reasoning=reasoning,
                answer=answer,
            )
        )

    def on_terminal(self, message_id: str, final_content: str) -> None:
        self._store.on_terminal(message_id, final_content)
        failed = self._decoder.failed
        if failed:
            reasoning, answer = None, None
        else:
            reasoning, answer = split_sections(final_content, self._labels)
        self._queue.put_nowait(
            StreamChunk(
                content=final_content,
                done=True,
                status=StreamStatus.ERROR if failed else StreamStatus.COMPLETE,
                error=final_content if failed else None,
                message_id=message_id,
                reasoning=reasoning,
                answer=answer,
            )
        )


async def _sse_events(
    store: SessionStore,
    message_id: str,
    fragments: AsyncIterable[str],
    settings: StreamSettings,
) -> AsyncGenerator[str, None]:
    """Run one exchange and yield its updates as SSE lines."""
    queue: asyncio.Queue[StreamChunk | None] = asyncio.Queue()
    decoder = StreamDecoder(settings)
    controller = StreamSessionController(
        _QueueSink(store, decoder, queue, settings.labels),
        message_id,
        settings=settings,
        decoder=decoder,
    )
    task = asyncio.create_task(controller.run(fragments))
    task.add_done_callback(lambda _: queue.put_nowait(None))

    finished = False
    try:
        while True:
            chunk = await queue.get()
            if chunk is None:
                # Controller stopped without a terminal update
                error = None if task.cancelled() else task.exception()
                logger.error(f"Exchange for message {message_id} ended abnormally: {error}")
                store.on_terminal(message_id, settings.failure_message)
                chunk = StreamChunk(
                    content=settings.failure_message,
                    done=True,
                    status=StreamStatus.ERROR,
                    error=settings.failure_message,
                    message_id=message_id,
                )
            yield f"data: {chunk.model_dump_json()}\n\n"
            if chunk.done:
                finished = True
                break
    finally:
        if not finished:
            logger.info(f"Client left, cancelling exchange for message {message_id}")
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)


@router.post("/sessions", response_model=Session, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: CreateSessionRequest | None = None,
    token: str = Depends(bearer_token),
    client: UpstreamClient = Depends(get_upstream_client),
    store: SessionStore = Depends(get_session_store),
) -> Session:
    """Create a chat session with the upstream service.

    Args:
        request: Optional title and model.

    Returns:
        The new, empty Session.

    Raises:
        401: Missing bearer token.
        422: Unknown model.
        502: Upstream session creation failed.
    """
    request = request or CreateSessionRequest()
    model = _resolve_model(request.model, client.config)
    session_id = await _create_upstream_session(client, token)
    return store.create_session(session_id, title=request.title, model=model)


@router.get("/sessions", response_model=list[SessionSummary])
async def list_sessions(store: SessionStore = Depends(get_session_store)) -> list[SessionSummary]:
    """List sessions, most recently updated first."""
    return [
        SessionSummary(
            id=s.id,
            title=s.title,
            model=s.model,
            message_count=len(s.messages),
            updated_at=s.updated_at,
        )
        for s in store.list_sessions()
    ]


@router.get("/sessions/{session_id}", response_model=Session)
async def get_session(session_id: str, store: SessionStore = Depends(get_session_store)) -> Session:
    """Return a session with its message history.

    An assistant message whose caller disconnected mid-stream keeps its last
    streamed content and ``is_loading=true``: a cancelled exchange writes
    nothing further. A persisted store clears the flag when it is next
    loaded from disk.

    Raises:
        404: Unknown session.
    """
    try:
        return store.get_session(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post("/stream")
async def stream_chat(
    request: ChatRequest,
    token: str = Depends(bearer_token),
    client: UpstreamClient = Depends(get_upstream_client),
    store: SessionStore = Depends(get_session_store),
    settings: StreamSettings = Depends(get_stream_settings),
) -> StreamingResponse:
    """Stream the answer to a message as SSE.

    Each event is a StreamChunk with the full composed message so far; the
    last one has ``done=true``. A session is created upstream when the
    request carries no session id.

    Raises:
        401: Missing bearer token.
        422: Invalid request or unknown model.
        502: Upstream session creation failed.
    """
    if request.session_id and store.has_session(request.session_id):
        session = store.get_session(request.session_id)
        model = _resolve_model(request.model or session.model, client.config)
        if model != session.model:
            store.set_model(session.id, model)
    else:
        model = _resolve_model(request.model, client.config)
        session_id = request.session_id or await _create_upstream_session(client, token)
        session = store.create_session(session_id, model=model)

    placeholder = store.begin_exchange(session.id, request.message)
    logger.info(f"Streaming message {placeholder.id} in session {session.id} ({model})")

    fragments = client.stream_message(
        request.message,
        session.id,
        token,
        model=model,
        use_rag=request.use_rag,
        use_common_rag=request.use_common_rag,
        terminal_marker=settings.terminal_marker,
    )
    return StreamingResponse(
        _sse_events(store, placeholder.id, fragments, settings),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
