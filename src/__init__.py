"""Chat stream relay - incremental decoding of snapshot-style chat streams.

The upstream resends the whole answer so far, wrapped in a markdown tag and
often percent-encoded. This package reconciles those snapshots into a stable,
monotonically growing reasoning section and answer section.

Components:
    - api: HTTP endpoints and SSE streaming responses
    - client: Upstream chat service client
    - parsing: Frame reading, tag extraction, and payload decoding
    - streaming: Section reduction, display composition, and exchange control
    - session: In-memory session store with optional JSON persistence
    - models: Request/response schemas
"""

__version__ = "0.1.0"
