class WatchPartyError(Exception):
    """Base class for errors raised by the room coordination core."""


class InvalidRoomCode(WatchPartyError, ValueError):
    """Room code is missing, not a string, or blank."""
