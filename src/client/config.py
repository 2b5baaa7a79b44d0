"""Upstream chat service configuration with environment variable loading.

Pydantic-based configuration for the upstream client. Auth tokens are not
part of the configuration; callers pass them per request.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()

DEFAULT_BASE_URL = "https://geogpt.zero2x.org.cn/be-api/service/api"
DEFAULT_MODELS = ["Qwen2.5-72B-GeoGPT", "GeoGPT-R1-Preview", "DeepSeekR1-GeoGPT"]
DEFAULT_MODEL = "GeoGPT-R1-Preview"


def _models_from_env() -> list[str]:
    raw = os.getenv("UPSTREAM_MODELS", "")
    models = [m.strip() for m in raw.split(",") if m.strip()]
    return models or list(DEFAULT_MODELS)


class UpstreamConfig(BaseModel):
    """Configuration for the upstream chat service client.

    Attributes:
        base_url: API base URL of the upstream service.
        timeout: Request timeout in seconds.
        models: Models a session may select.
        default_model: Model used when a session does not pick one.
    """

    base_url: str = Field(
        default_factory=lambda: os.getenv("UPSTREAM_BASE_URL", DEFAULT_BASE_URL),
        description="Upstream API base URL",
    )
    timeout: float = Field(
        default_factory=lambda: float(os.getenv("UPSTREAM_TIMEOUT", "120")),
        gt=0.0,
        le=600.0,
        description="Request timeout in seconds",
    )
    models: list[str] = Field(
        default_factory=_models_from_env,
        min_length=1,
        description="Selectable models",
    )
    default_model: str = Field(
        default_factory=lambda: os.getenv("UPSTREAM_DEFAULT_MODEL", DEFAULT_MODEL),
        description="Model used when none is selected",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("UPSTREAM_BASE_URL must be an http(s) URL")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_default_model(self) -> "UpstreamConfig":
        """Ensure the default model is one of the selectable models."""
        if self.default_model not in self.models:
            raise ValueError(
                f"default_model {self.default_model!r} is not in models {self.models}"
            )
        return self


def get_upstream_config() -> UpstreamConfig:
    """Create upstream configuration from environment.

    Returns:
        Configured UpstreamConfig instance.

    Raises:
        ValueError: If the environment holds an invalid setting.
    """
    return UpstreamConfig()
