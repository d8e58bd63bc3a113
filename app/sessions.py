"""
In-memory admin session table.

Maps opaque session tokens (delivered to the browser as a cookie) to user
ids. Entries expire after a fixed period of inactivity. The table lives in
process memory only, so sessions are lost on restart and users log in again.

One SessionStore is created per application and reached through
app.state.sessions; tests build their own with an injected clock.
"""

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class SessionRecord:
    user_id: int
    created_at: float
    last_seen: float


class SessionStore:
    """
    Thread-safe token -> user id table with an inactivity horizon.

    Args:
        ttl_seconds: seconds of inactivity after which a session expires
        clock: monotonic time source, overridable in tests
    """

    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _expired(self, record: SessionRecord, now: float) -> bool:
        return now - record.last_seen > self.ttl_seconds

    def create(self, user_id: int) -> str:
        """Start a session for user_id and return its token."""
        self.purge_expired()

        token = secrets.token_urlsafe(32)
        now = self._clock()
        with self._lock:
            self._sessions[token] = SessionRecord(user_id=user_id, created_at=now, last_seen=now)

        logger.info(f"Session created for user_id={user_id}")
        return token

    def resolve(self, token: Optional[str]) -> Optional[int]:
        """
        Return the user id bound to token, or None if the token is unknown
        or expired. A successful resolve counts as activity.
        """
        if not token:
            return None

        now = self._clock()
        with self._lock:
            record = self._sessions.get(token)
            if record is None:
                return None
            if self._expired(record, now):
                del self._sessions[token]
                logger.info(f"Session expired for user_id={record.user_id}")
                return None
            record.last_seen = now
            return record.user_id

    def destroy(self, token: Optional[str]) -> None:
        """Remove a session. Unknown tokens are ignored."""
        if not token:
            return
        with self._lock:
            record = self._sessions.pop(token, None)
        if record is not None:
            logger.info(f"Session destroyed for user_id={record.user_id}")

    def purge_expired(self) -> int:
        """Drop every expired session and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [t for t, r in self._sessions.items() if self._expired(r, now)]
            for token in expired:
                del self._sessions[token]
        if expired:
            logger.debug(f"Purged {len(expired)} expired sessions")
        return len(expired)
