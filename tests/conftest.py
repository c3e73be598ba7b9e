import os

# Keep the default app instance off the network
os.environ.setdefault("REDIS_HOST", "")
os.environ.pop("GOOGLE_API_KEY", None)

import pytest
from fastapi.testclient import TestClient

from ai_client import GeminiClient, SlidingWindowRateLimiter
from app import create_app
from backend import RedisBackend
from core.dispatcher import EventDispatcher
from core.state import SessionState


@pytest.fixture
def state():
    return SessionState()


@pytest.fixture
def chat_log():
    return RedisBackend(in_memory=True)


@pytest.fixture
def dispatcher(state, chat_log):
    return EventDispatcher(state, chat_log=chat_log)


@pytest.fixture
def app(state, chat_log):
    return create_app(
        state=state,
        backend=chat_log,
        ai=GeminiClient(api_key=None),
        rate_limiter=SlidingWindowRateLimiter(max_requests=2, window=60),
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def events_for(deliveries, connection_id):
    """(event, payload) pairs addressed to one connection, in delivery order."""
    return [(d.event, d.payload) for d in deliveries if connection_id in d.recipients]


def by_event(deliveries, event):
    return [d for d in deliveries if d.event == event]
