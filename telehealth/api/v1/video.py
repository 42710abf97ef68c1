from fastapi import APIRouter, Depends, WebSocket
import logging

from ...api.deps import (
    get_current_user_id, get_session_registry, get_signaling_relay,
    session_rate_limit
)
from ...schemas.video import CreateSessionResponse, SessionResponse
from ...services.session_registry import SessionRegistry
from ...services.signaling_relay import SignalingRelay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/video", tags=["Video Consultation"])


@router.post("/create-session", response_model=CreateSessionResponse)
async def create_session(
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
    _: None = Depends(session_rate_limit)
):
    """Create a video-consultation session owned by the caller."""
    session = registry.create(created_by=user_id)
    return CreateSessionResponse(session_id=session.id)


@router.get("/session/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_session_registry)
):
    """Get a session with its current participants."""
    # SessionNotFoundError is rendered as 404 by the app-level handler
    return SessionResponse.from_session(registry.get(session_id))


@router.websocket("/ws")
async def signaling_socket(
    websocket: WebSocket,
    relay: SignalingRelay = Depends(get_signaling_relay)
):
    """Signaling channel, one per browser peer. Frames are JSON objects."""
    await websocket.accept()
    connection = await relay.connect(websocket)
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                logger.debug(f"Socket {connection.connection_id} closed with code {frame.get('code')}")
                break
            raw = frame.get("text")
            if raw is None:
                raw = frame.get("bytes") or b""
            await relay.dispatch(connection, raw)
    finally:
        await relay.disconnect(connection)
