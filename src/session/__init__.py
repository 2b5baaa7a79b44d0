"""Chat session history and message sink.

Responsibilities:
    - Session creation, lookup and most-recent-first listing
    - Appending the user message and assistant placeholder per exchange
    - Replace-by-id updates while an exchange streams
    - Freezing finished messages and persisting the store once per exchange
"""

from src.session.store import SessionNotFoundError, SessionStore, get_session_store

__all__ = ["SessionNotFoundError", "SessionStore", "get_session_store"]
