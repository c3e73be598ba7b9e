"""
Authoritative per-room playback state.

Only the room's host may change it. Requests from anyone else are dropped
without a reply: clients follow host-driven state and never see a rejection.
Each accepted change is written to the Room first and then fanned out to every
other member, so a later joiner's snapshot already carries it.
"""
from typing import List, Optional

from core.events import Delivery, to_room
from core.room_store import Room
from core.state import SessionState
from logging_config import get_logger

logger = get_logger(__name__)


class PlaybackStateMachine:
    def __init__(self, state: SessionState):
        self.state = state

    def _host_room(self, connection_id: str, room_code: str, action: str) -> Optional[Room]:
        room = self.state.rooms.get(room_code)
        if room is None:
            logger.debug(f"Ignoring {action} for unknown room {room_code}")
            return None
        if room.host != connection_id:
            logger.debug(f"Ignoring {action} in room {room_code} from non-host {connection_id}")
            return None
        return room

    def set_url(self, connection_id: str, room_code: str, url: str) -> List[Delivery]:
        room = self._host_room(connection_id, room_code, "video-url-change")
        if room is None:
            return []
        room.video_url = url
        room.is_playing = False
        logger.info(f"Video URL changed in room {room.code}")
        return [to_room(room, "video-url-change", url, exclude=connection_id)]

    def play(self, connection_id: str, room_code: str, time: Optional[float] = None) -> List[Delivery]:
        room = self._host_room(connection_id, room_code, "video-play")
        if room is None:
            return []
        room.is_playing = True
        if time is not None:
            room.current_time = time
        logger.info(f"Video play in room {room.code} at {room.current_time}s")
        return [to_room(room, "video-play", {"time": room.current_time}, exclude=connection_id)]

    def pause(self, connection_id: str, room_code: str, time: Optional[float] = None) -> List[Delivery]:
        room = self._host_room(connection_id, room_code, "video-pause")
        if room is None:
            return []
        room.is_playing = False
        if time is not None:
            room.current_time = time
        logger.info(f"Video pause in room {room.code} at {room.current_time}s")
        return [to_room(room, "video-pause", {"time": room.current_time}, exclude=connection_id)]

    def seek(self, connection_id: str, room_code: str, time: float) -> List[Delivery]:
        room = self._host_room(connection_id, room_code, "video-seek")
        if room is None:
            return []
        room.current_time = time
        logger.info(f"Video seek to {time}s in room {room.code}")
        return [to_room(room, "video-seek", {"time": time}, exclude=connection_id)]

    def sync_time(self, connection_id: str, room_code: str, time: float) -> List[Delivery]:
        room = self._host_room(connection_id, room_code, "sync-time")
        if room is None:
            return []
        room.current_time = time
        return [to_room(room, "sync-time", {"time": time}, exclude=connection_id)]
