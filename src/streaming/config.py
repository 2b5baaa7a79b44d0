"""Stream decoding settings with environment variable loading.

Pydantic-based settings shared by the decoder and the session controller.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from src.parsing.frames import DEFAULT_TERMINAL_MARKER
from src.parsing.tags import DEFAULT_WRAPPER_TAG

# Load environment variables from .env file
load_dotenv()

DEFAULT_FAILURE_MESSAGE = "Sorry, something went wrong while sending your message. Please try again."


class DisplayLabels(BaseModel):
    """User-visible strings used when composing a streamed message.

    Attributes:
        thinking: Header while reasoning runs; ``{elapsed}`` is whole seconds.
        reasoning: Header once reasoning is done; ``{elapsed}`` is a label.
        generating: Notice shown between reasoning and the first answer text.
        processing: Placeholder before any content arrives.
        separator: Divider between the reasoning block and the answer.
        empty: Final content when the stream ended without any content.
    """

    thinking: str = "🤔 **Thinking…** ({elapsed}s)"
    reasoning: str = "💭 **Reasoning** ({elapsed})"
    generating: str = "_Generating answer…_"
    processing: str = "_Processing…_"
    separator: str = "\n\n---\n\n"
    empty: str = "_No response received._"


class StreamSettings(BaseModel):
    """Settings for decoding one streamed exchange.

    Attributes:
        wrapper_tag: Tag the upstream wraps each payload snapshot in.
        terminal_marker: Sentinel that ends the exchange.
        tick_interval: Seconds between elapsed-time refreshes.
        max_decode_rounds: Upper bound on nested percent-decode passes.
        failure_message: Content shown when the transport fails.
        labels: Display strings for the composer.
    """

    wrapper_tag: str = Field(
        default_factory=lambda: os.getenv("STREAM_WRAPPER_TAG", DEFAULT_WRAPPER_TAG),
        description="Wrapper tag around each payload snapshot",
    )
    terminal_marker: str = Field(
        default_factory=lambda: os.getenv("STREAM_TERMINAL_MARKER", DEFAULT_TERMINAL_MARKER),
        description="Sentinel marking the logical end of an exchange",
    )
    tick_interval: float = Field(
        default_factory=lambda: float(os.getenv("STREAM_TICK_INTERVAL", "1.0")),
        gt=0.0,
        le=60.0,
        description="Seconds between elapsed-time refreshes while reasoning",
    )
    max_decode_rounds: int = Field(
        default_factory=lambda: int(os.getenv("STREAM_MAX_DECODE_ROUNDS", "3")),
        ge=1,
        le=10,
        description="Maximum nested percent-decode passes",
    )
    failure_message: str = Field(
        default_factory=lambda: os.getenv("STREAM_FAILURE_MESSAGE", DEFAULT_FAILURE_MESSAGE),
        description="Content shown when the transport fails",
    )
    labels: DisplayLabels = Field(default_factory=DisplayLabels)

    @field_validator("wrapper_tag", "terminal_marker")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty tag names and markers."""
        if not v or not v.strip():
            raise ValueError("wrapper_tag and terminal_marker must be non-empty")
        return v.strip()


def get_stream_settings() -> StreamSettings:
    """Create stream settings from environment.

    Returns:
        Configured StreamSettings instance.
    """
    return StreamSettings()
