"""Session records for authenticated admins.

Each session is a short-lived record under ``lessence_session:<session_id>``
holding the authenticated flag and the current user snapshot.
"""
import uuid
from datetime import datetime, timedelta, UTC

from salon_booking import config
from salon_booking.auth import Principal
from salon_booking.logging_config import get_logger
from salon_booking.storage import KeyValueStore

logger = get_logger(__name__)


class SessionNotFoundError(Exception):
    """Raised when session_id not found, logged out or expired."""
    pass


class SessionManager:
    """
    Maps client session ids to authenticated principals.

    Responsibilities:
    - Create a session record on login
    - Resolve the current user for a session id
    - Clear the record on logout
    - Expire sessions inactive for longer than max_age_hours
    """

    def __init__(self, store: KeyValueStore, max_age_hours: int = 12):
        """
        Initialize SessionManager.

        Args:
            store: Persistence port shared with the repositories
            max_age_hours: Inactivity limit before a session expires
        """
        self.store = store
        self.max_age = timedelta(hours=max_age_hours)

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{config.SESSION_KEY_PREFIX}{session_id}"

    def create_session(self, principal: Principal) -> str:
        """
        Store a session record for a freshly authenticated principal.

        Returns:
            Generated session id
        """
        session_id = str(uuid.uuid4())
        self.store.set(self._key(session_id), {
            "authenticated": True,
            "user": principal.to_dict(),
            "last_activity": datetime.now(UTC).isoformat(),
        })
        logger.info("session_created", username=principal.username)
        return session_id

    def get_principal(self, session_id: str) -> Principal:
        """
        Resolve the current user for a session.

        Raises:
            SessionNotFoundError: If the session doesn't exist or expired
        """
        key = self._key(session_id)
        record = self.store.get(key)
        if not record or not record.get("authenticated"):
            raise SessionNotFoundError(f"Session {session_id} not found")

        last_activity = datetime.fromisoformat(record["last_activity"])
        now = datetime.now(UTC)
        if now - last_activity > self.max_age:
            self.store.delete(key)
            raise SessionNotFoundError(f"Session {session_id} expired")

        record["last_activity"] = now.isoformat()
        self.store.set(key, record)
        return Principal.from_dict(record["user"])

    def end_session(self, session_id: str) -> None:
        """Logout: clear the session record."""
        self.store.delete(self._key(session_id))
        logger.info("session_ended")

    def _update_last_activity(self, session_id: str, timestamp: datetime):
        """Helper for testing - manually update last_activity."""
        key = self._key(session_id)
        record = self.store.get(key)
        if record:
            record["last_activity"] = timestamp.isoformat()
            self.store.set(key, record)
