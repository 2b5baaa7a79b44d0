"""HTTP surface of the chat stream relay.

Endpoints:
    - GET /health: Service health status
    - POST /chat/sessions: Create an upstream chat session
    - GET /chat/sessions: List sessions
    - GET /chat/sessions/{id}: Session with its message history
    - POST /chat/stream: Stream the answer to a message as SSE
"""

from src.api.app import app, create_app

__all__ = ["app", "create_app"]
