"""In-memory chat session store with optional JSON persistence.

Implements the message sink used by the stream session controller:
placeholders are appended when an exchange starts, replaced by id on every
update, and frozen when the exchange reaches its terminal state. The store
is written to disk once per finished exchange when a path is configured.
"""

import logging
import os
import uuid
from datetime import UTC, datetime
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from src.models.schemas import DisplayMessage, Role, Session

logger = logging.getLogger(__name__)

_sessions_adapter = TypeAdapter(list[Session])


class SessionNotFoundError(Exception):
    """Raised when a session or message id is unknown."""

    pass


class SessionStore:
    """Owns session histories and applies streamed message updates."""

    def __init__(self, path: Path | None = None) -> None:
        """Initialize the store.

        Args:
            path: Optional JSON file to load from and persist finished
                exchanges to.
        """
        self._path = path
        self._sessions: dict[str, Session] = {}
        self._owners: dict[str, str] = {}
        self._frozen: set[str] = set()
        if path is not None and path.exists():
            self._load(path)

    def create_session(
        self,
        session_id: str | None = None,
        *,
        title: str | None = None,
        model: str | None = None,
    ) -> Session:
        """Create and register an empty session.

        Args:
            session_id: Session identifier; generated when omitted.
            title: Display title; numbered default when omitted.
            model: Model the session talks to.

        Returns:
            The new Session.
        """
        session = Session(
            id=session_id or str(uuid.uuid4()),
            title=title or f"New chat {len(self._sessions) + 1}",
            model=model,
        )
        if session.id in self._sessions:
            logger.warning(f"Replacing existing session {session.id}")
        self._sessions[session.id] = session
        return session

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get_session(self, session_id: str) -> Session:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(f"Unknown session: {session_id}") from None

    def list_sessions(self) -> list[Session]:
        """Return sessions, most recently updated first."""
        return sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)

    def set_model(self, session_id: str, model: str) -> Session:
        session = self.get_session(session_id)
        session.model = model
        return session

    def begin_exchange(self, session_id: str, text: str) -> DisplayMessage:
        """Append the user's message and a loading assistant placeholder.

        Returns:
            The assistant placeholder that the exchange will fill in.
        """
        session = self.get_session(session_id)
        user_message = DisplayMessage(role=Role.USER, content=text)
        placeholder = DisplayMessage(role=Role.ASSISTANT, is_loading=True)
        session.messages.extend([user_message, placeholder])
        session.updated_at = datetime.now(UTC)
        self._owners[user_message.id] = session_id
        self._owners[placeholder.id] = session_id
        return placeholder

    def get_message(self, message_id: str) -> DisplayMessage:
        session = self._owner(message_id)
        for message in session.messages:
            if message.id == message_id:
                return message
        raise SessionNotFoundError(f"Unknown message: {message_id}")

    def on_update(self, message_id: str, content: str, is_loading: bool) -> None:
        """Replace a streaming message's content."""
        if message_id in self._frozen:
            logger.debug(f"Ignoring update for finished message {message_id}")
            return
        self._replace(message_id, content=content, is_loading=is_loading)

    def on_terminal(self, message_id: str, final_content: str) -> None:
        """Freeze a message with its final content and persist the store."""
        if message_id in self._frozen:
            logger.warning(f"Message {message_id} already finished, ignoring terminal update")
            return
        self._replace(message_id, content=final_content, is_loading=False)
        self._frozen.add(message_id)
        self._persist()

    def _owner(self, message_id: str) -> Session:
        session_id = self._owners.get(message_id)
        if session_id is None:
            raise SessionNotFoundError(f"Unknown message: {message_id}")
        return self.get_session(session_id)

    def _replace(self, message_id: str, **changes: object) -> None:
        session = self._owner(message_id)
        for index, message in enumerate(session.messages):
            if message.id == message_id:
                session.messages[index] = message.model_copy(update=changes)
                session.updated_at = datetime.now(UTC)
                return
        raise SessionNotFoundError(f"Unknown message: {message_id}")

    def _persist(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_bytes(_sessions_adapter.dump_json(list(self._sessions.values()), indent=2))
        tmp_path.replace(self._path)
        logger.debug(f"Persisted {len(self._sessions)} sessions to {self._path}")

    def _load(self, path: Path) -> None:
        try:
            sessions = _sessions_adapter.validate_json(path.read_bytes())
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable session file {path}: {e}")
            return

        for session in sessions:
            # A message still loading on disk was cut off by a restart
            session.messages = [
                m.model_copy(update={"is_loading": False}) if m.is_loading else m
                for m in session.messages
            ]
            self._sessions[session.id] = session
            for message in session.messages:
                self._owners[message.id] = session.id
                self._frozen.add(message.id)
        logger.info(f"Loaded {len(sessions)} sessions from {path}")


# Module-level singleton instance
_session_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Get or create the global session store.

    Uses SESSION_STORE_PATH for persistence when set.

    Returns:
        The SessionStore instance.
    """
    global _session_store
    if _session_store is None:
        path = os.getenv("SESSION_STORE_PATH")
        _session_store = SessionStore(Path(path) if path else None)
    return _session_store
