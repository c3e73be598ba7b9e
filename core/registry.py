from typing import Dict, Optional


class ConnectionInfo:
    __slots__ = ("room_code", "name", "is_host")

    def __init__(self, room_code: Optional[str] = None, name: Optional[str] = None, is_host: bool = False):
        self.room_code = room_code
        self.name = name
        self.is_host = is_host

    def __repr__(self):
        return f"ConnectionInfo(room_code={self.room_code!r}, name={self.name!r}, is_host={self.is_host})"


class ConnectionRegistry:
    """Connection id -> the room it sits in, for O(1) lookup on disconnect."""

    def __init__(self):
        self._connections: Dict[str, ConnectionInfo] = {}

    def __len__(self):
        return len(self._connections)

    def __contains__(self, connection_id: str):
        return connection_id in self._connections

    def register(self, connection_id: str):
        self._connections.setdefault(connection_id, ConnectionInfo())

    def bind(self, connection_id: str, room_code: str, name: str, is_host: bool):
        info = self._connections.setdefault(connection_id, ConnectionInfo())
        info.room_code = room_code
        info.name = name
        info.is_host = is_host

    def set_host(self, connection_id: str, is_host: bool):
        info = self._connections.get(connection_id)
        if info is not None:
            info.is_host = is_host

    def lookup(self, connection_id: str) -> Optional[ConnectionInfo]:
        """Return the binding for a connection, or None if it is unknown or not in a room."""
        info = self._connections.get(connection_id)
        if info is None or info.room_code is None:
            return None
        return info

    def unbind(self, connection_id: str) -> Optional[ConnectionInfo]:
        info = self.lookup(connection_id)
        if info is None:
            return None
        self._connections[connection_id] = ConnectionInfo()
        return info

    def unregister(self, connection_id: str) -> Optional[ConnectionInfo]:
        info = self._connections.pop(connection_id, None)
        if info is None or info.room_code is None:
            return None
        return info

    def bound_count(self) -> int:
        return sum(1 for info in self._connections.values() if info.room_code is not None)
