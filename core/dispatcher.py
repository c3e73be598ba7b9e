from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple, Type

from pydantic import ValidationError

from core.events import Delivery, private, to_room
from core.membership import MembershipManager
from core.playback import PlaybackStateMachine
from core.room_store import Room
from core.state import SessionState
from logging_config import get_logger
from schemas.events import (
    ChatMessageEvent,
    InboundEvent,
    JoinRoomEvent,
    JoinVoiceEvent,
    LeaveRoomEvent,
    PingEvent,
    RoomMembersRequest,
    SyncTimeEvent,
    VideoPauseEvent,
    VideoPlayEvent,
    VideoSeekEvent,
    VideoUrlChangeEvent,
    VoiceSignalEvent,
)
from schemas.rooms import ChatMessage

logger = get_logger(__name__)

Handler = Callable[[str, InboundEvent], List[Delivery]]


class EventDispatcher:
    """Routes each inbound event type to exactly one handler.

    Handlers are synchronous: a mutation and the deliveries it produces are
    computed in one step, and the transport sends them afterwards. Invalid input
    of any kind is logged and dropped, never raised back to the transport.

    ``chat_log`` is any object with ``append_chat_message(room_code, entry)``.
    Handlers never touch it; ``persist`` does, and its failures are logged and
    swallowed.
    """

    def __init__(self, state: SessionState, chat_log=None):
        self.state = state
        self.chat_log = chat_log
        self.membership = MembershipManager(state)
        self.playback = PlaybackStateMachine(state)
        self.routes: Dict[str, Tuple[Type[InboundEvent], Handler]] = {
            "join-room": (JoinRoomEvent, self.on_join_room),
            "leave-room": (LeaveRoomEvent, self.on_leave_room),
            "get-room-members": (RoomMembersRequest, self.on_get_room_members),
            "video-url-change": (VideoUrlChangeEvent, self.on_video_url_change),
            "video-play": (VideoPlayEvent, self.on_video_play),
            "video-pause": (VideoPauseEvent, self.on_video_pause),
            "video-seek": (VideoSeekEvent, self.on_video_seek),
            "sync-time": (SyncTimeEvent, self.on_sync_time),
            "chat-message": (ChatMessageEvent, self.on_chat_message),
            "join-voice": (JoinVoiceEvent, self.on_join_voice),
            "voice-signal": (VoiceSignalEvent, self.on_voice_signal),
            "ping": (PingEvent, self.on_ping),
        }

    # ---- connection lifecycle ----

    def connect(self, connection_id: str) -> List[Delivery]:
        self.state.connections.register(connection_id)
        logger.info(f"User connected: {connection_id}")
        return [private(connection_id, "connected", {"connectionId": connection_id})]

    def disconnect(self, connection_id: str) -> List[Delivery]:
        deliveries = self.membership.leave(connection_id)
        self.state.connections.unregister(connection_id)
        logger.info(f"User disconnected: {connection_id}")
        return deliveries

    def dispatch(self, connection_id: str, event_type: Optional[str], payload) -> List[Delivery]:
        route = self.routes.get(event_type)
        if route is None:
            logger.warning(f"Dropping unknown event type '{event_type}' from {connection_id}")
            return []

        schema, handler = route
        try:
            event = schema.model_validate(payload if payload is not None else {})
        except ValidationError as e:
            logger.warning(f"Dropping malformed '{event_type}' from {connection_id}: {e.error_count()} error(s)")
            logger.debug(f"Validation details for '{event_type}' from {connection_id}: {e}")
            return []

        try:
            return handler(connection_id, event)
        except Exception as e:
            logger.error(f"Error handling '{event_type}' from {connection_id}: {e}", exc_info=True)
            return []

    def persist(self, deliveries: List[Delivery]) -> int:
        """Write the chat messages among ``deliveries`` to the chat log.

        Blocking; the transport runs it in an executor once the deliveries
        have been sent. Returns the number of entries written.
        """
        if self.chat_log is None:
            return 0
        written = 0
        for delivery in deliveries:
            if delivery.event != "chat-message":
                continue
            room_code = delivery.payload["roomCode"]
            try:
                self.chat_log.append_chat_message(room_code, delivery.payload)
                written += 1
            except Exception as e:
                logger.warning(f"Could not persist chat message for room {room_code}: {e}")
        return written

    # ---- membership ----

    def on_join_room(self, connection_id: str, event: JoinRoomEvent) -> List[Delivery]:
        return self.membership.join(connection_id, event.room_code, event.name, event.is_host)

    def on_leave_room(self, connection_id: str, event: LeaveRoomEvent) -> List[Delivery]:
        return self.membership.leave(connection_id)

    def on_get_room_members(self, connection_id: str, event: RoomMembersRequest) -> List[Delivery]:
        return self.membership.members(connection_id, event.room_code)

    # ---- playback ----

    def on_video_url_change(self, connection_id: str, event: VideoUrlChangeEvent) -> List[Delivery]:
        return self.playback.set_url(connection_id, event.room_code, event.url)

    def on_video_play(self, connection_id: str, event: VideoPlayEvent) -> List[Delivery]:
        return self.playback.play(connection_id, event.room_code, event.time)

    def on_video_pause(self, connection_id: str, event: VideoPauseEvent) -> List[Delivery]:
        return self.playback.pause(connection_id, event.room_code, event.time)

    def on_video_seek(self, connection_id: str, event: VideoSeekEvent) -> List[Delivery]:
        return self.playback.seek(connection_id, event.room_code, event.time)

    def on_sync_time(self, connection_id: str, event: SyncTimeEvent) -> List[Delivery]:
        return self.playback.sync_time(connection_id, event.room_code, event.time)

    # ---- chat & voice relays ----

    def _member_room(self, connection_id: str, room_code: str) -> Optional[Room]:
        """The room, if ``connection_id`` is currently one of its members."""
        info = self.state.connections.lookup(connection_id)
        if info is None or info.room_code != room_code:
            return None
        room = self.state.rooms.get(room_code)
        if room is None or connection_id not in room.members:
            return None
        return room

    def on_chat_message(self, connection_id: str, event: ChatMessageEvent) -> List[Delivery]:
        room = self._member_room(connection_id, event.room_code)
        if room is None:
            logger.debug(f"Ignoring chat-message for room {event.room_code} from non-member {connection_id}")
            return []

        message = ChatMessage(
            room_code=room.code,
            name=event.name or room.members[connection_id].name,
            message=event.message,
            timestamp=event.timestamp or datetime.now().isoformat(),
        )
        return [to_room(room, "chat-message", message.model_dump(by_alias=True))]

    def on_join_voice(self, connection_id: str, event: JoinVoiceEvent) -> List[Delivery]:
        room = self._member_room(connection_id, event.room_code)
        if room is None:
            return []
        name = event.name or room.members[connection_id].name
        logger.debug(f"{name} joined voice in room {room.code}")
        return [to_room(room, "user-joined-voice", {"userId": event.user_id, "name": name}, exclude=connection_id)]

    def on_voice_signal(self, connection_id: str, event: VoiceSignalEvent) -> List[Delivery]:
        room = self._member_room(connection_id, event.room_code)
        if room is None or event.to not in room.members or event.to == connection_id:
            logger.debug(f"Dropping voice-signal from {connection_id} to {event.to} in room {event.room_code}")
            return []
        return [private(event.to, "voice-signal", {"from": connection_id, "signal": event.signal})]

    def on_ping(self, connection_id: str, event: PingEvent) -> List[Delivery]:
        return [private(connection_id, "pong", {"timestamp": event.timestamp})]
