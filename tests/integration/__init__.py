"""Integration tests for components working together as a system.

Drives the real FastAPI app over ASGITransport. Only the upstream chat
service is replaced, by an httpx MockTransport serving recorded streams.

Coverage:
    - Session endpoints
    - SSE streaming from upstream snapshots to composed chunks
    - Error mapping for upstream and transport failures
"""
