"""
Shared fixtures for the realtime conversation tests.
"""

import asyncio
from itertools import count
from typing import Any, Dict, List, Optional, Set

import pytest

from src.realtime_api.conversation import Conversation
from src.realtime_api.event_handler import RealtimeEventHandler
from src.realtime_api.events import ClientEvent, ServerEvent, decode_server_event
from src.realtime_api.transport import ConnectionStatus

_event_ids = count(1)


def server_event(event_type: str, **fields: Any) -> ServerEvent:
    """Build a decoded server event from wire-style fields."""
    return decode_server_event(
        {"type": event_type, "event_id": f"event_{next(_event_ids)}", **fields}
    )


class MockTransport(RealtimeEventHandler):
    """In-memory transport recording sent client events."""

    def __init__(self, status: ConnectionStatus = ConnectionStatus.CONNECTED):
        super().__init__()
        self.status = status
        self.sent: List[ClientEvent] = []
        self.fail_on: Set[str] = set()
        self.connect_calls: List[Dict[str, Any]] = []
        self.disconnected = False
        self._inbound: "asyncio.Queue[Optional[ServerEvent]]" = asyncio.Queue()

    async def connect(self, **kwargs: Any) -> None:
        self.connect_calls.append(kwargs)
        self.status = ConnectionStatus.CONNECTED

    async def disconnect(self) -> None:
        self.disconnected = True
        self.status = ConnectionStatus.DISCONNECTED

    def send(self, event: ClientEvent) -> None:
        if event.type in self.fail_on:
            raise ConnectionError(f"socket closed while sending {event.type}")
        self.sent.append(event)

    async def events(self):
        while True:
            event = await self._inbound.get()
            if event is None:
                return
            yield event

    def feed(self, event: ServerEvent) -> None:
        self._inbound.put_nowait(event)

    def end_stream(self) -> None:
        self._inbound.put_nowait(None)

    def sent_types(self) -> List[str]:
        return [event.type for event in self.sent]


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def transport():
    """Fixture providing a connected mock transport."""
    return MockTransport()


@pytest.fixture
def clock():
    """Fixture providing a controllable clock."""
    return FakeClock()


@pytest.fixture
def conversation(transport, clock):
    """Fixture providing a conversation wired to the mock transport."""
    return Conversation(transport, clock=clock, session_config={}, poll_interval=0.01)
