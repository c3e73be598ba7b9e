import asyncio
import math
from typing import List

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from core.events import dump_all, to_room
from logging_config import get_logger
from schemas.ai import AIChatRequest, AIChatResponse, AIMessage

logger = get_logger(__name__)

ai_router = APIRouter(prefix="/api/gemini", tags=["ai"])

AI_DISPLAY_NAME = "Gemini AI"


@ai_router.post("", response_model=AIChatResponse)
async def ai_chat(chat: AIChatRequest, request: Request):
    """
    Ask the AI assistant on behalf of a room member.

    Answers 429 with ``retryAfter`` (seconds) once the member has used up the
    sliding window. When the model can't be reached, the reply is a canned
    fallback with ``isFallback: true`` rather than an error.
    """
    state = request.app.state
    if not chat.prompt.strip() and not chat.files:
        raise HTTPException(status_code=400, detail="prompt or files required")

    allowed, retry_after = state.rate_limiter.check(chat.room_code, chat.name)
    if not allowed:
        retry_secs = max(1, math.ceil(retry_after))
        return JSONResponse(
            {"error": "Rate limit exceeded", "retryAfter": retry_secs},
            status_code=429,
            headers={"Retry-After": str(retry_secs)},
        )

    logger.info(f"AI chat request from {chat.name} in room {chat.room_code}")
    reply, is_fallback = await state.ai.generate(chat.prompt, chat.files)

    turns = [
        AIMessage(name=chat.name, message=chat.prompt, role="user", files=chat.files),
        AIMessage(name=AI_DISPLAY_NAME, message=reply, role="gemini", is_fallback=is_fallback),
    ]
    entries = dump_all(turns)

    # Looked up after the await: the room may have emptied meanwhile
    room = state.session.rooms.get(chat.room_code)
    if room is not None:
        # The requester already has the reply in the HTTP response
        await state.connection_manager.deliver([
            to_room(room, "gemini-message", entries, exclude=chat.connection_id),
        ])

    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, _log_turns, state.backend, chat.room_code, entries)

    return AIChatResponse(reply=reply, is_fallback=is_fallback)


def _log_turns(backend, room_code: str, entries: List[dict]):
    for entry in entries:
        try:
            backend.append_ai_message(room_code, entry)
        except Exception as e:
            logger.warning(f"Could not persist AI message for room {room_code}: {e}")


@ai_router.get("/{room_code}")
def ai_history(room_code: str, request: Request):
    # Plain def: FastAPI runs the blocking Redis read in its threadpool
    return request.app.state.backend.get_ai_history(room_code.upper())
