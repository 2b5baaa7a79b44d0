"""Pydantic models for API requests, responses and chat history.

Provides type safety, validation, and automatic OpenAPI documentation.

Models:
    - DisplayMessage: Individual message as shown in a session
    - Session: Ordered message history with title and model
    - ChatRequest: Incoming streaming chat request payload
    - StreamChunk: Composed display update sent over SSE
    - UpstreamEnvelope: ``{code, msg, data}`` wrapper of the upstream service
"""

from src.models.schemas import (
    ChatRequest,
    CreateSessionRequest,
    DisplayMessage,
    Role,
    Session,
    SessionSummary,
    StreamChunk,
    StreamStatus,
    UpstreamEnvelope,
)

__all__ = [
    "ChatRequest",
    "CreateSessionRequest",
    "DisplayMessage",
    "Role",
    "Session",
    "SessionSummary",
    "StreamChunk",
    "StreamStatus",
    "UpstreamEnvelope",
]
