from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Member(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    connection_id: str = Field(alias="connectionId")
    name: str
    is_host: bool = Field(default=False, alias="isHost")
    joined_at: datetime = Field(default_factory=datetime.now, alias="joinedAt")


class ChatMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_code: str = Field(alias="roomCode")
    name: str
    message: str
    timestamp: str


class RoomSnapshot(BaseModel):
    """Full room state sent privately to a connection right after it joins."""
    model_config = ConfigDict(populate_by_name=True)

    members: List[Member]
    video_url: str = Field(alias="videoUrl")
    is_playing: bool = Field(alias="isPlaying")
    current_time: float = Field(alias="currentTime")
    host: Optional[str] = None


class RoomSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_count: int = Field(alias="userCount")
    users: List[Member]
    host: Optional[str] = None
    video_url: str = Field(alias="videoUrl")
    created_at: datetime = Field(alias="createdAt")


class RoomDetailsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_count: int = Field(alias="userCount")
    users: List[Member]
    host: Optional[str] = None
    video_url: str = Field(alias="videoUrl")
    is_playing: bool = Field(alias="isPlaying")
    current_time: float = Field(alias="currentTime")


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    rooms: int
    users: int
