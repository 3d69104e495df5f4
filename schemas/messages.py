import json
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator
from typing import Annotated, Any, Dict, List, Literal, Union

from constants import ROOM_CODE_PATTERN
from exceptions import MalformedFrame, SchemaViolation, UnknownMessageKind

MESSAGE_KINDS = frozenset({"create", "join", "signal", "leave", "pong"})


def normalize_room_code(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("room code must be a string")
    return value.strip().lower()


class RoomFrame(BaseModel):
    room: str = Field(pattern=ROOM_CODE_PATTERN)

    @field_validator("room", mode="before")
    @classmethod
    def _normalize_room(cls, value: Any) -> str:
        return normalize_room_code(value)


class CreateFrame(RoomFrame):
    type: Literal["create"]


class JoinFrame(RoomFrame):
    type: Literal["join"]


class SignalFrame(BaseModel):
    type: Literal["signal"]
    # Opaque handshake payload (SDP offer/answer, ICE candidate, or anything newer)
    data: Union[Dict[str, Any], List[Any]]

    @field_validator("data")
    @classmethod
    def _non_empty(cls, value):
        if not value:
            raise ValueError("signal data must not be empty")
        return value


class LeaveFrame(BaseModel):
    type: Literal["leave"]


class PongFrame(BaseModel):
    type: Literal["pong"]


InboundFrame = Annotated[
    Union[CreateFrame, JoinFrame, SignalFrame, LeaveFrame, PongFrame],
    Field(discriminator="type"),
]

inbound_frame_adapter = TypeAdapter(InboundFrame)


def parse_frame(raw: Union[str, bytes]):
    """Parse and validate one client frame.

    Raises MalformedFrame, UnknownMessageKind or SchemaViolation.
    """
    try:
        data = json.loads(raw)
    except (ValueError, TypeError):
        raise MalformedFrame()

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise MalformedFrame()
    if data["type"] not in MESSAGE_KINDS:
        raise UnknownMessageKind()

    try:
        return inbound_frame_adapter.validate_python(data)
    except ValidationError:
        raise SchemaViolation()


# Server -> client frames

def frame(kind: str, **fields) -> Dict[str, Any]:
    return {"type": kind, **fields}


def created(room: str) -> Dict[str, Any]:
    return frame("created", room=room)


def joined(room: str) -> Dict[str, Any]:
    return frame("joined", room=room)


def signal(data: Any) -> Dict[str, Any]:
    return frame("signal", data=data)


def error() -> Dict[str, Any]:
    # Deliberately no reason text
    return frame("error")
