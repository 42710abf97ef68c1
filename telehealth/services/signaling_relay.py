from typing import Dict, Iterable, List, Optional, Union
from pydantic import ValidationError
import asyncio
import logging
import uuid

from ..models.session import PeerConnection, PeerState
from ..schemas.video import (
    EndCallMessage, JoinMessage, SignalMessage, parse_inbound,
    call_ended, peer_joined, peer_left, signal
)
from .session_registry import SessionNotFoundError, SessionRegistry

logger = logging.getLogger(__name__)


class NotJoinedError(Exception):
    """A handshake frame referenced a session the sender has not joined."""

    def __init__(self, connection_id: str, session_id: str):
        super().__init__(f"Connection {connection_id} has not joined session {session_id}")
        self.connection_id = connection_id
        self.session_id = session_id


class SignalingRelay:
    """Relays WebRTC handshake frames between peers of the same session.

    Every connection owns an outbound queue drained by its own writer task, so
    a slow peer only delays itself. Target sets are computed and frames are
    enqueued while the session lock is held, which keeps delivery consistent
    with concurrent joins and leaves and preserves per-sender order.
    """

    def __init__(self, registry: SessionRegistry, send_timeout: Optional[float] = None):
        self.registry = registry
        self.send_timeout = send_timeout or None
        self._connections: Dict[str, PeerConnection] = {}

    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, transport) -> PeerConnection:
        """Register a newly opened transport and start its writer."""
        connection = PeerConnection(connection_id=uuid.uuid4().hex, transport=transport)
        connection.writer = asyncio.create_task(self._drain(connection))
        self._connections[connection.connection_id] = connection
        logger.info(f"Peer connected: {connection.connection_id}")
        return connection

    async def dispatch(self, connection: PeerConnection, raw: Union[str, bytes]) -> None:
        """Handle one inbound text frame. Nothing is ever sent back on error."""
        if connection.state is PeerState.CLOSED:
            return

        try:
            message = parse_inbound(raw)
        except ValidationError as e:
            logger.warning(
                f"Dropping malformed frame from {connection.connection_id}: "
                f"{e.error_count()} error(s)"
            )
            return

        try:
            if isinstance(message, JoinMessage):
                await self.join(connection, message.session_id, message.peer_user_id)
            elif isinstance(message, SignalMessage):
                await self.relay(connection, message.session_id, signal(message.type, message.payload))
            elif isinstance(message, EndCallMessage):
                await self.relay(connection, message.session_id, call_ended())
        except NotJoinedError as e:
            logger.debug(f"Dropping {message.type}: {e}")
        except SessionNotFoundError as e:
            logger.warning(f"Dropping {message.type} from {connection.connection_id}: {e}")

    async def join(self, connection: PeerConnection, session_id: str, peer_user_id: str) -> None:
        """Add the connection to a session group and announce it to the others."""
        if connection.is_joined:
            if connection.session_id == session_id:
                return
            # Unknown target raises here, before the current membership is touched
            self.registry.get(session_id)
            await self._leave(connection)

        async with self.registry.lock(session_id):
            session = self.registry.get(session_id)
            targets = self._members(session.members, exclude=connection.connection_id)
            self.registry.add_member(session_id, connection.connection_id, peer_user_id)
            connection.state = PeerState.JOINED
            connection.session_id = session_id
            connection.peer_user_id = peer_user_id
            self._fan_out(targets, peer_joined(peer_user_id))

        logger.info(f"Peer {peer_user_id} ({connection.connection_id}) joined session {session_id}")

    async def relay(self, connection: PeerConnection, session_id: str, message: dict) -> None:
        """Deliver a frame to every other member of the sender's session."""
        if not connection.is_joined or connection.session_id != session_id:
            raise NotJoinedError(connection.connection_id, session_id)

        async with self.registry.lock(session_id):
            session = self.registry.get(session_id)
            session.touch()
            self._fan_out(
                self._members(session.members, exclude=connection.connection_id),
                message
            )

    async def disconnect(self, connection: PeerConnection) -> None:
        """Close a connection. Safe to call more than once."""
        if connection.state is PeerState.CLOSED:
            return

        was_joined = connection.is_joined
        connection.state = PeerState.CLOSED
        self._connections.pop(connection.connection_id, None)
        if connection.writer is not None:
            connection.writer.cancel()

        if was_joined:
            await self._leave(connection)
        logger.info(f"Peer disconnected: {connection.connection_id}")

    async def close(self) -> None:
        """Stop every writer task. Called on application shutdown."""
        writers = [c.writer for c in self._connections.values() if c.writer is not None]
        for writer in writers:
            writer.cancel()
        await asyncio.gather(*writers, return_exceptions=True)

    async def _leave(self, connection: PeerConnection) -> None:
        session_id = connection.session_id
        async with self.registry.lock(session_id):
            peer_user_id = self.registry.remove_member(session_id, connection.connection_id)
            if peer_user_id is not None:
                session = self.registry.get(session_id)
                self._fan_out(
                    self._members(session.members, exclude=connection.connection_id),
                    peer_left(peer_user_id)
                )

        if connection.state is not PeerState.CLOSED:
            connection.state = PeerState.CONNECTED
        connection.session_id = None
        connection.peer_user_id = None
        logger.info(f"Peer {peer_user_id} ({connection.connection_id}) left session {session_id}")

    def _members(self, members: Iterable[str], exclude: str) -> List[PeerConnection]:
        targets = []
        for connection_id in members:
            if connection_id == exclude:
                continue
            connection = self._connections.get(connection_id)
            if connection is not None:
                targets.append(connection)
        return targets

    @staticmethod
    def _fan_out(targets: Iterable[PeerConnection], message: dict) -> None:
        for target in targets:
            target.outbox.put_nowait(message)

    async def _drain(self, connection: PeerConnection) -> None:
        """Writer task: forward queued frames to the transport in order."""
        while True:
            message = await connection.outbox.get()
            try:
                if self.send_timeout:
                    await asyncio.wait_for(connection.transport.send_json(message), self.send_timeout)
                else:
                    await connection.transport.send_json(message)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Send to {connection.connection_id} timed out after "
                    f"{self.send_timeout}s, closing"
                )
                await self._abort(connection)
                return
            except Exception as e:
                # The reader side sees the broken transport and runs disconnect()
                logger.warning(f"Send to {connection.connection_id} failed: {e}")
                return

    @staticmethod
    async def _abort(connection: PeerConnection) -> None:
        try:
            await connection.transport.close()
        except Exception as e:
            logger.debug(f"Closing {connection.connection_id} failed: {e}")
