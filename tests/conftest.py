"""
pytest configuration and fixtures.
"""

import asyncio
import json
from typing import Callable, List

import pytest
from fastapi.websockets import WebSocketState

from backend import ConnectionRecord, RoomRegistry
from message_router import MessageRouter
from ratelimit import ConnectionRateLimiter


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWebSocket:
    """Records what the relay sends; yields on every send so tasks interleave."""

    def __init__(self):
        self.sent: List[dict] = []
        self.close_code = None
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED

    async def send_text(self, text: str) -> None:
        await asyncio.sleep(0)
        if self.application_state != WebSocketState.CONNECTED:
            raise RuntimeError("send after close")
        self.sent.append(json.loads(text))

    async def close(self, code: int = 1000, reason=None) -> None:
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    def drop(self) -> None:
        """Simulate the peer vanishing."""
        self.client_state = WebSocketState.DISCONNECTED

    def types(self) -> List[str]:
        return [m["type"] for m in self.sent]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock) -> RoomRegistry:
    return RoomRegistry(dedup_max_size=200, dedup_ttl=60, clock=clock)


@pytest.fixture
def make_connection() -> Callable[[], ConnectionRecord]:
    def _make(source: str = "10.0.0.1") -> ConnectionRecord:
        return ConnectionRecord(websocket=FakeWebSocket(), source=source)
    return _make


@pytest.fixture
def router(registry, clock) -> MessageRouter:
    return MessageRouter(
        registry,
        ConnectionRateLimiter(window=1.0, max_count=5, clock=clock),
        max_message_size=1024,
    )
