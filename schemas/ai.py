from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.room_store import canonical_room_code


class AIChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_code: str = Field(alias="roomCode")
    name: str = "Guest"
    prompt: str = ""
    files: List[str] = Field(default_factory=list)
    # Sender's own socket, skipped by the room broadcast
    connection_id: Optional[str] = Field(default=None, alias="connectionId")

    @field_validator("room_code", mode="before")
    @classmethod
    def normalize_room_code(cls, value):
        return canonical_room_code(value)


class AIChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reply: str
    is_fallback: bool = Field(default=False, alias="isFallback")


class AIMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    message: str
    role: str  # "user" | "gemini"
    files: List[str] = Field(default_factory=list)
    is_fallback: bool = Field(default=False, alias="isFallback")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
