from dataclasses import dataclass
from typing import Any, Iterable, Tuple

from core.room_store import Room


@dataclass(frozen=True)
class Delivery:
    """One outbound event and the connections it goes to, resolved when it was produced."""
    event: str
    payload: Any
    recipients: Tuple[str, ...]

    def to_wire(self) -> dict:
        return {"type": self.event, "data": self.payload}


def private(connection_id: str, event: str, payload: Any = None) -> Delivery:
    return Delivery(event, payload, (connection_id,))


def to_room(room: Room, event: str, payload: Any = None, exclude: str = None) -> Delivery:
    """Whole room, or room minus ``exclude`` (the sender)."""
    return Delivery(event, payload, tuple(room.member_ids(exclude=exclude)))


def dump(model) -> Any:
    return model.model_dump(by_alias=True, mode="json")


def dump_all(models: Iterable) -> list:
    return [dump(model) for model in models]
