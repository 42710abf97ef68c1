from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set
import asyncio
import enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class VideoSession:
    """One video-consultation room.

    ``members`` maps connection id to the peer user id that joined through it;
    ``participants`` is the set of user ids currently present.
    """

    id: str
    created_by: str
    created_at: datetime = field(default_factory=utcnow)
    members: Dict[str, str] = field(default_factory=dict)
    last_activity_at: datetime = field(default_factory=utcnow)

    @property
    def participants(self) -> Set[str]:
        return set(self.members.values())

    def touch(self) -> None:
        self.last_activity_at = utcnow()

    def __repr__(self):
        return f"<VideoSession(id='{self.id}', created_by='{self.created_by}', participants={len(self.members)})>"


class PeerState(str, enum.Enum):
    CONNECTED = "connected"
    JOINED = "joined"
    CLOSED = "closed"


@dataclass(eq=False)
class PeerConnection:
    connection_id: str
    transport: Any  # anything with async send_json() and close()
    state: PeerState = PeerState.CONNECTED
    session_id: Optional[str] = None
    peer_user_id: Optional[str] = None
    outbox: "asyncio.Queue[dict]" = field(default_factory=asyncio.Queue)
    writer: Optional["asyncio.Task[None]"] = None

    @property
    def is_joined(self) -> bool:
        return self.state is PeerState.JOINED

    def __repr__(self):
        return f"<PeerConnection(id='{self.connection_id}', state='{self.state.value}', session_id={self.session_id!r})>"
