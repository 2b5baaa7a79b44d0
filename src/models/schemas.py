import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, field_validator

T = TypeVar("T")

UPSTREAM_SUCCESS_CODE = "00000"


def _now() -> datetime:
    return datetime.now(UTC)


class StreamStatus(str, Enum):
    """Status values for streaming updates."""

    PROCESSING = "processing"
    THINKING = "thinking"
    GENERATING = "generating"
    ANSWERING = "answering"
    COMPLETE = "complete"
    ERROR = "error"


class Role(str, Enum):
    """Speaker of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class DisplayMessage(BaseModel):
    """A chat message as shown to the user.

    Attributes:
        id: Unique message identifier.
        role: Who sent the message.
        content: Composed message content (markdown).
        is_loading: Whether the message is still streaming.
        timestamp: When the message was created.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Role
    content: str = ""
    is_loading: bool = False
    timestamp: datetime = Field(default_factory=_now)


class Session(BaseModel):
    """An ordered chat history with metadata.

    Attributes:
        id: Session identifier (issued by the upstream service when available).
        title: Display title.
        model: Model the session talks to.
        messages: Messages in send order.
        created_at: Creation timestamp.
        updated_at: Last modification timestamp.
    """

    id: str
    title: str
    model: str | None = None
    messages: list[DisplayMessage] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class ChatRequest(BaseModel):
    """Request payload for the streaming chat endpoint.

    Attributes:
        message: User's question or prompt.
        session_id: Optional session for conversation continuity.
        model: Optional model override for this session.
        use_rag: Search the caller's own knowledge base.
        use_common_rag: Search the shared knowledge base.
    """

    message: str = Field(..., min_length=1)
    session_id: str | None = None
    model: str | None = None
    use_rag: bool | None = None
    use_common_rag: bool | None = None

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v: str) -> str:
        """Strip whitespace from message before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


class CreateSessionRequest(BaseModel):
    """Request payload for creating a chat session."""

    title: str | None = None
    model: str | None = None


class SessionSummary(BaseModel):
    """Session list entry without its messages."""

    id: str
    title: str
    model: str | None = None
    message_count: int = Field(ge=0)
    updated_at: datetime


class StreamChunk(BaseModel):
    """A composed display update sent over SSE.

    Each chunk carries the full message content so far, not a delta.

    Attributes:
        content: The composed message content.
        done: Whether this is the final chunk.
        status: Current phase of the exchange.
        error: Error message if the exchange failed.
        message_id: Id of the assistant message being streamed.
        reasoning: Quoted reasoning block of the content, if present.
        answer: Content after the reasoning block.
    """

    content: str
    done: bool
    status: StreamStatus | None = None
    error: str | None = None
    message_id: str | None = None
    reasoning: str | None = None
    answer: str | None = None


class UpstreamEnvelope(BaseModel, Generic[T]):
    """Response envelope used by the upstream chat service.

    Attributes:
        code: ``00000`` on success, an error code otherwise.
        msg: Error message, if any.
        data: Response payload.
        traceId: Upstream trace identifier.
    """

    code: str
    msg: str | None = None
    data: T | None = None
    traceId: str | None = None

    @property
    def ok(self) -> bool:
        return self.code == UPSTREAM_SUCCESS_CODE
