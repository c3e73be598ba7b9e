"""
Process-local room/session state. One instance per application, passed to every
handler instead of living in module globals.
"""
from core.registry import ConnectionRegistry
from core.room_store import RoomStore


class SessionState:
    def __init__(self):
        self.connections = ConnectionRegistry()
        self.rooms = RoomStore()
