"""httpx client for the upstream chat service.

Responsibilities:
    - Upstream session creation with envelope unwrapping
    - Streaming message answers as SSE-framed text fragments
    - Per-call bearer token pass-through (tokens are never stored)
    - Mapping HTTP and connection failures to project errors

Keeps the HTTP details out of the decoder and the API layer.
"""

from src.client.config import UpstreamConfig, get_upstream_config
from src.client.upstream import UpstreamAPIError, UpstreamClient, get_upstream_client

__all__ = [
    "UpstreamAPIError",
    "UpstreamClient",
    "UpstreamConfig",
    "get_upstream_client",
    "get_upstream_config",
]
