from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, List, Optional

from core.errors import InvalidRoomCode
from logging_config import get_logger
from schemas.rooms import Member, RoomSnapshot

logger = get_logger(__name__)


def canonical_room_code(room_code) -> str:
    """Room codes are case-insensitive; the canonical form is uppercase.

    Blank codes are rejected here so they never reach the store.
    """
    if not isinstance(room_code, str) or not room_code.strip():
        raise InvalidRoomCode(f"Invalid room code: {room_code!r}")
    return room_code.upper()


class PlaybackState(str, Enum):
    NO_VIDEO = "no_video"
    PAUSED = "paused"
    PLAYING = "playing"


class Room:
    def __init__(self, code: str):
        self.code = code
        # Insertion order is join order; host failover depends on it
        self.members: Dict[str, Member] = {}
        self.video_url = ""
        self.is_playing = False
        self.current_time = 0.0
        self.host: Optional[str] = None
        self.created_at = datetime.now()

    def __repr__(self):
        return f"<Room {self.code} members={len(self.members)} host={self.host}>"

    @property
    def playback_state(self) -> PlaybackState:
        if self.is_playing:
            return PlaybackState.PLAYING
        if self.video_url:
            return PlaybackState.PAUSED
        return PlaybackState.NO_VIDEO

    def member_ids(self, exclude: Optional[str] = None) -> List[str]:
        return [cid for cid in self.members if cid != exclude]

    def roster(self) -> List[Member]:
        return list(self.members.values())

    def snapshot(self) -> RoomSnapshot:
        return RoomSnapshot(
            members=self.roster(),
            video_url=self.video_url,
            is_playing=self.is_playing,
            current_time=self.current_time,
            host=self.host,
        )


class RoomStore:
    """Room code -> Room. Rooms are created on first join and dropped once empty."""

    def __init__(self):
        self._rooms: Dict[str, Room] = {}

    def __len__(self):
        return len(self._rooms)

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def get_or_create(self, room_code: str) -> Room:
        code = canonical_room_code(room_code)
        room = self._rooms.get(code)
        if room is None:
            room = Room(code)
            self._rooms[code] = room
            logger.info(f"Created new room: {code}")
        return room

    def get(self, room_code: str) -> Optional[Room]:
        try:
            code = canonical_room_code(room_code)
        except InvalidRoomCode:
            return None
        return self._rooms.get(code)

    def delete_if_empty(self, room_code: str) -> bool:
        room = self.get(room_code)
        if room is None or room.members:
            return False
        del self._rooms[room.code]
        logger.info(f"Room {room.code} deleted (empty)")
        return True
