from datetime import datetime
from typing import Annotated, Any, List, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# REST contract
class CreateSessionResponse(CamelModel):
    session_id: str = Field(alias="sessionId")


class SessionResponse(CamelModel):
    id: str
    participants: List[str]
    created_at: datetime = Field(alias="createdAt")
    created_by: str = Field(alias="createdBy")

    @classmethod
    def from_session(cls, session) -> "SessionResponse":
        return cls(
            id=session.id,
            participants=sorted(session.participants),
            created_at=session.created_at,
            created_by=session.created_by,
        )


# Inbound signaling frames
class JoinMessage(CamelModel):
    type: Literal["join"]
    session_id: str = Field(alias="sessionId", min_length=1)
    peer_user_id: str = Field(alias="peerUserId", min_length=1)


class SignalMessage(CamelModel):
    """WebRTC handshake data; ``payload`` is never inspected."""

    type: Literal["offer", "answer", "ice-candidate"]
    session_id: str = Field(alias="sessionId", min_length=1)
    payload: Any


class EndCallMessage(CamelModel):
    type: Literal["end-call"]
    session_id: str = Field(alias="sessionId", min_length=1)


InboundMessage = Annotated[
    Union[JoinMessage, SignalMessage, EndCallMessage],
    Field(discriminator="type"),
]

inbound_message_adapter = TypeAdapter(InboundMessage)


def parse_inbound(raw: Union[str, bytes]) -> Union[JoinMessage, SignalMessage, EndCallMessage]:
    """Parse one text frame. Raises ``pydantic.ValidationError`` when malformed."""
    return inbound_message_adapter.validate_json(raw)


# Outbound signaling frames
def peer_joined(peer_user_id: str) -> dict:
    return {"type": "peer-joined", "peerUserId": peer_user_id}


def peer_left(peer_user_id: str) -> dict:
    return {"type": "peer-left", "peerUserId": peer_user_id}


def signal(message_type: str, payload: Any) -> dict:
    return {"type": message_type, "payload": payload}


def call_ended() -> dict:
    return {"type": "call-ended"}
