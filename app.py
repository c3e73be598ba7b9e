from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
import uuid
import json
import asyncio
from typing import Dict, Iterable, Optional

from ai_client import GeminiClient, SlidingWindowRateLimiter
from backend import RedisBackend
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL
from core.dispatcher import EventDispatcher
from core.events import Delivery
from core.state import SessionState
from logging_config import get_logger, setup_logging
from routers.ai import ai_router
from routers.rooms import rooms_router

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


class ConnectionManager:
    """Live WebSockets by connection id. Knows nothing about rooms; deliveries carry their recipients."""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    def add(self, connection_id: str, websocket: WebSocket):
        self.active_connections[connection_id] = websocket
        logger.debug(f"Added connection {connection_id} (local connections: {len(self.active_connections)})")

    def remove(self, connection_id: str):
        if connection_id in self.active_connections:
            del self.active_connections[connection_id]
            logger.debug(f"Removed connection {connection_id} from local tracking")

    async def deliver(self, deliveries: Iterable[Delivery]):
        for delivery in deliveries:
            text = json.dumps(delivery.to_wire())
            targets = [(cid, self.active_connections[cid]) for cid in delivery.recipients
                       if cid in self.active_connections]
            if not targets:
                continue

            # Send to all recipients concurrently
            results = await asyncio.gather(*(ws.send_text(text) for _, ws in targets), return_exceptions=True)
            for (conn_id, _), result in zip(targets, results):
                if isinstance(result, Exception):
                    # Connection is gone; its receive loop runs the leave
                    logger.warning(f"Error sending '{delivery.event}' to connection {conn_id}: {result}")
                    self.remove(conn_id)
            logger.debug(f"Delivered '{delivery.event}' to {len(targets)} connection(s)")


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def parse_frame(data: str):
    """Split an inbound frame into (event type, payload). Returns (None, None) if it is unusable."""
    try:
        # NaN and Infinity would be echoed back as frames browsers cannot parse
        message = json.loads(data, parse_constant=_reject_constant)
    except ValueError:
        return None, None
    if not isinstance(message, dict) or not isinstance(message.get("type"), str):
        return None, None

    event_type = message["type"]
    if isinstance(message.get("data"), dict):
        return event_type, message["data"]
    return event_type, {k: v for k, v in message.items() if k != "type"}


def create_app(state: Optional[SessionState] = None, backend: Optional[RedisBackend] = None,
               ai: Optional[GeminiClient] = None,
               rate_limiter: Optional[SlidingWindowRateLimiter] = None) -> FastAPI:
    """Build the application around one explicitly owned SessionState."""
    app = FastAPI(title="Watch Party Relay")

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.session = state or SessionState()
    app.state.backend = backend or RedisBackend()
    app.state.ai = ai or GeminiClient()
    app.state.rate_limiter = rate_limiter or SlidingWindowRateLimiter()
    app.state.dispatcher = EventDispatcher(app.state.session, chat_log=app.state.backend)
    app.state.connection_manager = ConnectionManager()

    app.include_router(rooms_router)
    app.include_router(ai_router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """One persistent connection per client. Frames are JSON: {"type": <event>, ...fields}."""
        dispatcher: EventDispatcher = websocket.app.state.dispatcher
        manager: ConnectionManager = websocket.app.state.connection_manager

        loop = asyncio.get_running_loop()
        connection_id = uuid.uuid4().hex
        await websocket.accept()
        manager.add(connection_id, websocket)
        logger.info(f"WebSocket connection accepted: {connection_id}")

        try:
            await manager.deliver(dispatcher.connect(connection_id))

            message_count = 0
            while True:
                data = await websocket.receive_text()
                message_count += 1
                logger.debug(f"Received message #{message_count} from connection {connection_id}")

                event_type, payload = parse_frame(data)
                if event_type is None:
                    logger.warning(f"Dropping unreadable frame from connection {connection_id}")
                    continue

                deliveries = dispatcher.dispatch(connection_id, event_type, payload)
                await manager.deliver(deliveries)

                # Chat log writes block on Redis, keep them off the event loop
                if any(d.event == "chat-message" for d in deliveries):
                    await loop.run_in_executor(None, dispatcher.persist, deliveries)

        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected normally for connection {connection_id}")
        except Exception as e:
            logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
        finally:
            # Cleanup on disconnect
            manager.remove(connection_id)
            await manager.deliver(dispatcher.disconnect(connection_id))

    logger.info("FastAPI application initialized")
    return app


app = create_app()
