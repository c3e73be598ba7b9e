import json
from collections import OrderedDict, deque
from typing import Deque, List, Optional

import redis

from constants import (
    CHAT_HISTORY_LIMIT,
    CHAT_HISTORY_TTL,
    MEMORY_LOG_MAX_ROOMS,
    REDIS_HOST,
    REDIS_PASSWORD,
    REDIS_PORT,
)
from logging_config import get_logger
from redis_keys import REDIS_AI_KEY, REDIS_CHAT_KEY

logger = get_logger(__name__)


class RedisBackend:
    """Per-room chat and AI logs kept in Redis lists.

    The logs sit outside the room sync path and the backend never raises to
    the caller. While Redis is failing, writes go to a bounded process-memory
    backlog and reads are served from it. Every call tries Redis again; the
    first one that succeeds for a key pushes that key's backlog to Redis.

    All methods block on the network, so async callers run them in an executor.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None, history_limit: int = CHAT_HISTORY_LIMIT,
                 ttl: int = CHAT_HISTORY_TTL, in_memory: bool = False, memory_rooms: int = MEMORY_LOG_MAX_ROOMS):
        self.history_limit = history_limit
        self.ttl = ttl
        self.memory_rooms = memory_rooms
        self._memory: "OrderedDict[str, Deque[str]]" = OrderedDict()
        self._healthy = True
        if redis_client is not None:
            self.redis_client = redis_client
        elif REDIS_HOST and not in_memory:
            # No connection is made until the first command
            self.redis_client = redis.Redis(
                host=REDIS_HOST,
                port=REDIS_PORT,
                password=REDIS_PASSWORD,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
            logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}")
        else:
            self.redis_client = None
            logger.info("Redis disabled, chat history kept in memory")

    @property
    def available(self) -> bool:
        """True while Redis is configured and its last command succeeded."""
        return self.redis_client is not None and self._healthy

    def _mark_down(self, error: Exception):
        if self._healthy:
            logger.warning(f"Redis unavailable, using in-memory chat history until it recovers: {error}")
        else:
            logger.debug(f"Redis still unavailable: {error}")
        self._healthy = False

    def _mark_up(self):
        if not self._healthy:
            logger.info("Redis reachable again")
        self._healthy = True

    def _remember(self, key: str, entry_json: str):
        log = self._memory.get(key)
        if log is None:
            log = self._memory[key] = deque(maxlen=self.history_limit)
            # Least recently written rooms go first
            while len(self._memory) > self.memory_rooms:
                self._memory.popitem(last=False)
        else:
            self._memory.move_to_end(key)
        log.append(entry_json)

    def _write(self, key: str, entries_json: List[str]):
        pipe = self.redis_client.pipeline()
        pipe.rpush(key, *entries_json)
        pipe.ltrim(key, -self.history_limit, -1)
        if self.ttl:
            pipe.expire(key, self.ttl)
        pipe.execute()

    def _flush_backlog(self, key: str):
        backlog = self._memory.get(key)
        if backlog:
            self._write(key, list(backlog))
            logger.info(f"Moved {len(backlog)} buffered entries for {key} to Redis")
        self._memory.pop(key, None)

    def _append(self, key: str, entry: dict):
        entry_json = json.dumps(entry)
        if self.redis_client is not None:
            try:
                self._flush_backlog(key)
                self._write(key, [entry_json])
                self._mark_up()
                logger.debug(f"Appended entry to {key}")
                return
            except redis.RedisError as e:
                self._mark_down(e)
        self._remember(key, entry_json)

    def _read(self, key: str, limit: Optional[int] = None) -> List[dict]:
        count = min(limit or self.history_limit, self.history_limit)
        raw: List[str]
        if self.redis_client is not None:
            try:
                self._flush_backlog(key)
                raw = self.redis_client.lrange(key, -count, -1)
                self._mark_up()
            except redis.RedisError as e:
                self._mark_down(e)
                raw = list(self._memory.get(key, ()))[-count:]
        else:
            raw = list(self._memory.get(key, ()))[-count:]

        result = []
        for item in raw:
            try:
                result.append(json.loads(item))
            except (json.JSONDecodeError, TypeError):
                logger.debug(f"Skipping unreadable entry in {key}")
        return result

    def append_chat_message(self, room_code: str, entry: dict):
        self._append(REDIS_CHAT_KEY.format(slug=room_code), entry)

    def get_chat_history(self, room_code: str, limit: Optional[int] = None) -> List[dict]:
        return self._read(REDIS_CHAT_KEY.format(slug=room_code), limit)

    def append_ai_message(self, room_code: str, entry: dict):
        self._append(REDIS_AI_KEY.format(slug=room_code), entry)

    def get_ai_history(self, room_code: str, limit: Optional[int] = None) -> List[dict]:
        return self._read(REDIS_AI_KEY.format(slug=room_code), limit)
