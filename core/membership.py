from datetime import datetime
from typing import List, Optional

from core.events import Delivery, dump, dump_all, private, to_room
from core.room_store import Room, canonical_room_code
from core.state import SessionState
from logging_config import get_logger
from schemas.rooms import Member

logger = get_logger(__name__)


def default_display_name(connection_id: str) -> str:
    return f"User_{connection_id[:8]}"


class MembershipManager:
    """Join/leave, host election and host failover for rooms."""

    def __init__(self, state: SessionState):
        self.state = state

    def join(self, connection_id: str, room_code: str, name: Optional[str], wants_host: bool) -> List[Delivery]:
        deliveries: List[Delivery] = []

        # A connection sits in one room at a time
        code = canonical_room_code(room_code)
        current = self.state.connections.lookup(connection_id)
        if current is not None and current.room_code != code:
            logger.info(f"Connection {connection_id} switching from room {current.room_code} to {code}")
            deliveries.extend(self.leave(connection_id))

        display_name = name.strip() if name and name.strip() else default_display_name(connection_id)
        room = self.state.rooms.get_or_create(code)
        if connection_id in room.members:
            # Rejoin of the same room: drop the stale entry, keep the room alive
            del room.members[connection_id]
            if room.host == connection_id:
                room.host = None
        member = Member(connection_id=connection_id, name=display_name, is_host=False, joined_at=datetime.now())
        room.members[connection_id] = member

        if wants_host or room.host is None:
            self._assign_host(room, connection_id)

        self.state.connections.bind(connection_id, room.code, display_name, member.is_host)
        logger.info(
            f"{display_name} joined room {room.code} as {'Host' if member.is_host else 'Member'}. "
            f"Room now has {len(room.members)} users"
        )

        deliveries.append(private(connection_id, "room-state", dump(room.snapshot())))
        deliveries.append(to_room(room, "user-joined", {
            "connectionId": connection_id,
            "name": display_name,
            "isHost": member.is_host,
        }, exclude=connection_id))
        deliveries.append(self._roster(room))
        return deliveries

    def leave(self, connection_id: str) -> List[Delivery]:
        info = self.state.connections.lookup(connection_id)
        if info is None:
            return []

        room = self.state.rooms.get(info.room_code)
        deliveries: List[Delivery] = []
        if room is not None:
            departed = room.members.pop(connection_id, None)
            name = departed.name if departed else info.name
            logger.info(f"{name} left room {room.code}. Room now has {len(room.members)} users")

            if room.host == connection_id:
                room.host = None
                if room.members:
                    deliveries.append(self._promote_successor(room))

            if not self.state.rooms.delete_if_empty(room.code):
                deliveries.append(to_room(room, "user-left", {"connectionId": connection_id, "name": name}))
                deliveries.append(self._roster(room))

        self.state.connections.unbind(connection_id)
        return deliveries

    def members(self, connection_id: str, room_code: str) -> List[Delivery]:
        room = self.state.rooms.get(room_code)
        roster = dump_all(room.roster()) if room else []
        return [private(connection_id, "room-members", roster)]

    def _assign_host(self, room: Room, connection_id: str):
        previous = room.host
        if previous is not None and previous != connection_id and previous in room.members:
            room.members[previous].is_host = False
            self.state.connections.set_host(previous, False)
            logger.info(f"Host of room {room.code} taken over from {previous} by {connection_id}")
        room.host = connection_id
        room.members[connection_id].is_host = True

    def _promote_successor(self, room: Room) -> Delivery:
        successor = next(iter(room.members.values()))
        room.host = successor.connection_id
        successor.is_host = True
        self.state.connections.set_host(successor.connection_id, True)
        logger.info(f"New host assigned in room {room.code}: {successor.name}")
        return private(successor.connection_id, "host-changed", {
            "newHostId": successor.connection_id,
            "isHost": True,
        })

    @staticmethod
    def _roster(room: Room) -> Delivery:
        members = dump_all(room.roster())
        logger.debug(f"Broadcasting {len(members)} members to room {room.code}")
        return to_room(room, "room-members", members)
