"""In-process registry of live import sessions, scoped by school"""
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from src.classboom.config import get_settings
from src.classboom.schemas.student_import import ImportSession
from src.classboom.services.errors import SessionNotFoundError

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, ttl_minutes: Optional[int] = None):
        self._sessions: Dict[str, ImportSession] = {}
        self._lock = threading.Lock()
        self.ttl = timedelta(
            minutes=ttl_minutes if ttl_minutes is not None else get_settings().IMPORT_SESSION_TTL_MINUTES
        )

    def _is_expired(self, session: ImportSession, now: datetime) -> bool:
        return session.updated_at + self.ttl < now

    def add(self, session: ImportSession) -> ImportSession:
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str, school_id: int) -> ImportSession:
        now = datetime.now(timezone.utc)
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None and self._is_expired(session, now):
                del self._sessions[session_id]
                session = None
        if session is None or session.school_id != school_id:
            raise SessionNotFoundError(session_id)
        return session

    def discard(self, session_id: str, school_id: int) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.school_id != school_id:
                raise SessionNotFoundError(session_id)
            del self._sessions[session_id]

    def cleanup_expired(self) -> int:
        now = datetime.now(timezone.utc)
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if self._is_expired(s, now)]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info(f"Removed {len(expired)} expired import sessions")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


IMPORT_SESSIONS = SessionStore()


def get_session_store() -> SessionStore:
    return IMPORT_SESSIONS
