"""Shared fixtures for unit tests.

These tests need no app, settings or environment variables: the services
under test take their collaborators as constructor arguments.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from loyalty_relay.exceptions import RemoteApiError, RemoteApiTimeoutError


class FakeSender:
    """Records reward events instead of calling the rewards API.

    Attributes:
        calls: (event_type, user_email, metadata) per accepted event
        fail_on: event types that raise RemoteApiError(status=503)
        timeout_on: event types that raise RemoteApiTimeoutError
        gate: optional asyncio.Event every send waits on
    """

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.attempts: List[str] = []
        self.fail_on: set = set()
        self.timeout_on: set = set()
        self.gate: Optional[asyncio.Event] = None

    async def send_event(self, event_type, user_email, metadata=None):
        self.attempts.append(event_type)
        if self.gate is not None:
            await self.gate.wait()
        if event_type in self.timeout_on:
            raise RemoteApiTimeoutError("Loyalteez API timeout")
        if event_type in self.fail_on:
            raise RemoteApiError("Loyalteez API error: 503", status=503, body={"error": "down"})
        self.calls.append({"event_type": event_type, "user_email": user_email, "metadata": metadata or {}})
        return {"success": True, "eventId": f"evt_{len(self.calls)}"}

    def event_types(self) -> List[str]:
        return [c["event_type"] for c in self.calls]


@pytest.fixture
def fake_sender() -> FakeSender:
    return FakeSender()
