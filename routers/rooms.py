from datetime import datetime
from typing import List

from fastapi import APIRouter, HTTPException, Query, Request

from core.room_store import Room
from core.state import SessionState
from logging_config import get_logger
from schemas.rooms import HealthResponse, RoomDetailsResponse, RoomSummary

logger = get_logger(__name__)

rooms_router = APIRouter(tags=["rooms"])


def _session(request: Request) -> SessionState:
    return request.app.state.session


def _get_room_or_404(request: Request, room_code: str) -> Room:
    room = _session(request).rooms.get(room_code)
    if room is None:
        logger.info(f"Room details failed: Room {room_code.upper()} not found")
        raise HTTPException(status_code=404, detail="Room not found")
    return room


@rooms_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    session = _session(request)
    return HealthResponse(
        status="ok",
        timestamp=datetime.now().isoformat(),
        rooms=len(session.rooms),
        users=session.connections.bound_count(),
    )


@rooms_router.get("/api/rooms", response_model=List[RoomSummary])
async def list_rooms(request: Request):
    """All active rooms. Read-only."""
    return [
        RoomSummary(
            id=room.code,
            user_count=len(room.members),
            users=room.roster(),
            host=room.host,
            video_url=room.video_url,
            created_at=room.created_at,
        )
        for room in _session(request).rooms
    ]


@rooms_router.get("/api/rooms/{room_code}", response_model=RoomDetailsResponse)
async def get_room_details(room_code: str, request: Request):
    """
    Current state of one room. The code is case-insensitive.

    Returns 404 when no such room exists; looking a room up never creates it.
    """
    room = _get_room_or_404(request, room_code)
    return RoomDetailsResponse(
        id=room.code,
        user_count=len(room.members),
        users=room.roster(),
        host=room.host,
        video_url=room.video_url,
        is_playing=room.is_playing,
        current_time=room.current_time,
    )


@rooms_router.get("/api/rooms/{room_code}/messages")
def get_room_messages(room_code: str, request: Request,
                      limit: int = Query(50, ge=1, le=500, description="Newest N messages")):
    """Chat log for a room, oldest first. Works for rooms that have since emptied.

    A plain ``def`` so the blocking Redis read runs in the threadpool.
    """
    return request.app.state.backend.get_chat_history(room_code.upper(), limit)
