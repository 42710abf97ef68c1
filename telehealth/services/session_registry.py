from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional
import asyncio
import logging
import uuid

from ..models.session import VideoSession, utcnow

logger = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionRegistry:
    """In-memory table of video sessions keyed by session id.

    Records live for the process lifetime unless expired by ``purge_idle``.
    """

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self._sessions: Dict[str, VideoSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    def create(self, created_by: str) -> VideoSession:
        """Create and store a new session with no participants."""
        session_id = self._id_factory()
        while session_id in self._sessions:
            session_id = self._id_factory()

        session = VideoSession(id=session_id, created_by=created_by)
        self._sessions[session_id] = session
        logger.info(f"Session {session_id} created by {created_by}")
        return session

    def get(self, session_id: str) -> VideoSession:
        """Return the stored session, raising SessionNotFoundError if unknown."""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def lock(self, session_id: str) -> asyncio.Lock:
        """Mutual-exclusion scope for membership changes and fan-out of one session."""
        lock = self._locks.get(session_id)
        if lock is None:
            if session_id not in self._sessions:
                raise SessionNotFoundError(session_id)
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def add_member(self, session_id: str, connection_id: str, peer_user_id: str) -> VideoSession:
        session = self.get(session_id)
        session.members[connection_id] = peer_user_id
        session.touch()
        return session

    def remove_member(self, session_id: str, connection_id: str) -> Optional[str]:
        """Drop a connection from the session; returns its peer user id if it was a member."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        peer_user_id = session.members.pop(connection_id, None)
        session.touch()
        return peer_user_id

    def purge_idle(self, max_idle_seconds: float, now: Optional[datetime] = None) -> List[str]:
        """Remove empty sessions idle for longer than ``max_idle_seconds``."""
        now = now or utcnow()
        cutoff = now - timedelta(seconds=max_idle_seconds)
        expired = []
        for session_id, session in list(self._sessions.items()):
            if session.members or session.last_activity_at > cutoff:
                continue
            lock = self._locks.get(session_id)
            if lock is not None and lock.locked():
                continue
            del self._sessions[session_id]
            self._locks.pop(session_id, None)
            expired.append(session_id)

        if expired:
            logger.info(f"Expired {len(expired)} idle session(s)")
        return expired

    def count(self) -> int:
        return len(self._sessions)


async def run_session_sweeper(
    registry: SessionRegistry,
    max_idle_seconds: float,
    interval_seconds: float
) -> None:
    """Periodically expire idle sessions until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        registry.purge_idle(max_idle_seconds)
