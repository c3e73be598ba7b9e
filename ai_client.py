"""
Generative-AI chat proxy: a rate limiter and a Gemini REST client.

Neither touches room state. Every failure turns into a local fallback reply.
"""
import time
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from constants import (
    AI_RATE_LIMIT_MAX,
    AI_RATE_LIMIT_WINDOW,
    AI_REQUEST_TIMEOUT,
    GEMINI_API_BASE,
    GEMINI_MODEL,
    GOOGLE_API_KEY,
)
from logging_config import get_logger

logger = get_logger(__name__)

FALLBACK_REPLY = (
    "The AI assistant is unavailable right now, so this is an automatic reply. "
    "Please try again in a little while."
)


class SlidingWindowRateLimiter:
    """At most ``max_requests`` per ``window`` seconds for each (room, user) key."""

    def __init__(self, max_requests: int = AI_RATE_LIMIT_MAX, window: float = AI_RATE_LIMIT_WINDOW,
                 clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window = window
        self.clock = clock
        self._ledger: Dict[Tuple[str, str], List[float]] = {}

    def check(self, room_code: str, user: str) -> Tuple[bool, float]:
        """Record a request if allowed. Returns (allowed, seconds until the next slot frees)."""
        key = (room_code.upper(), user)
        now = self.clock()
        self._sweep(now)

        recent = self._ledger.get(key, [])
        if len(recent) >= self.max_requests:
            retry_after = self.window - (now - recent[0])
            logger.warning(f"AI rate limit exceeded for {user} in room {key[0]}")
            return False, max(retry_after, 0.0)

        self._ledger[key] = recent + [now]
        return True, 0.0

    def _sweep(self, now: float):
        # Clean old entries, and forget keys with nothing left in the window
        for key in list(self._ledger):
            recent = [t for t in self._ledger[key] if now - t < self.window]
            if recent:
                self._ledger[key] = recent
            else:
                del self._ledger[key]

    def __len__(self):
        return len(self._ledger)


class GeminiClient:
    def __init__(self, api_key: Optional[str] = GOOGLE_API_KEY, model: str = GEMINI_MODEL,
                 base_url: str = GEMINI_API_BASE, timeout: float = AI_REQUEST_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def build_payload(prompt: str, files: List[str]) -> dict:
        text = prompt
        if files:
            text = f"{prompt}\n\nAttached files:\n" + "\n".join(files)
        return {"contents": [{"role": "user", "parts": [{"text": text}]}]}

    @staticmethod
    def extract_reply(data: dict) -> str:
        parts = data["candidates"][0]["content"]["parts"]
        reply = "".join(part.get("text", "") for part in parts).strip()
        if not reply:
            raise ValueError("empty reply")
        return reply

    async def generate(self, prompt: str, files: Optional[List[str]] = None) -> Tuple[str, bool]:
        """Ask the model. Returns (reply, is_fallback)."""
        if not self.configured:
            logger.info("GOOGLE_API_KEY not configured, using fallback reply")
            return FALLBACK_REPLY, True

        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(url, params={"key": self.api_key}, json=self.build_payload(prompt, files or []))
                r.raise_for_status()
                data = r.json()
            return self.extract_reply(data), False
        except httpx.HTTPStatusError as e:
            logger.warning(f"Gemini request failed with status {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.warning(f"Gemini request failed: {e}")
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"Unexpected Gemini response: {e}")
        return FALLBACK_REPLY, True
