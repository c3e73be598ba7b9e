"""Inbound WebSocket event payloads.

Every event that names a room carries ``roomCode``; it is canonicalized here so
handlers only ever see uppercase codes. A blank code fails validation and the
event is dropped by the dispatcher.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, field_validator

from core.room_store import canonical_room_code


class InboundEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RoomEvent(InboundEvent):
    room_code: str = Field(alias="roomCode")

    @field_validator("room_code", mode="before")
    @classmethod
    def normalize_room_code(cls, value):
        return canonical_room_code(value)


class JoinRoomEvent(RoomEvent):
    name: Optional[str] = None
    is_host: bool = Field(default=False, alias="isHost")


class VideoUrlChangeEvent(RoomEvent):
    url: str


# Playback positions may be negative or past the end, but never NaN or infinite
class VideoPlayEvent(RoomEvent):
    time: Optional[FiniteFloat] = None


class VideoPauseEvent(RoomEvent):
    time: Optional[FiniteFloat] = None


class VideoSeekEvent(RoomEvent):
    time: FiniteFloat


class SyncTimeEvent(RoomEvent):
    time: FiniteFloat


class ChatMessageEvent(RoomEvent):
    name: Optional[str] = None
    message: str
    timestamp: Optional[str] = None


class JoinVoiceEvent(RoomEvent):
    user_id: str = Field(alias="userId")
    name: Optional[str] = None


class VoiceSignalEvent(RoomEvent):
    to: str
    signal: Any = None


class RoomMembersRequest(RoomEvent):
    pass


class LeaveRoomEvent(InboundEvent):
    pass


class PingEvent(InboundEvent):
    timestamp: Any = None
