"""Pytest configuration for app integration tests

WHAT: Provides shared fixtures for HTTP endpoint tests
WHY: Every test gets a fresh app with a fake reward sender and a mocked
     rewards API, so no test ever reaches the real Loyalteez API.
REFERENCES:
    - loyalty_relay/app_factory.py: create_app()
    - loyalty_relay/deps.py: Settings
"""

import asyncio
import json
import os
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

# Set test environment before anything builds Settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SHOPIFY_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("LOYALTEEZ_API_URL", "https://loyalteez.test")

from loyalty_relay.deps import Settings
from loyalty_relay.exceptions import RemoteApiError
from loyalty_relay.app_factory import create_app
from loyalty_relay.services.loyalteez_client import LoyalteezClient
from loyalty_relay.services.webhook_verifier import compute_signature

TEST_SECRET = "test-webhook-secret"
TEST_SHOP = "test-store.myshopify.com"
TEST_API_URL = "https://loyalteez.test"


# ============================================================================
# Fakes
# ============================================================================

class FakeSender:
    """Stands in for LoyalteezClient.send_event inside the webhook router."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.fail_on: set = set()
        self.gate: Optional[asyncio.Event] = None

    async def send_event(self, event_type, user_email, metadata=None):
        if self.gate is not None:
            await self.gate.wait()
        if event_type in self.fail_on:
            raise RemoteApiError("Loyalteez API error: 503", status=503)
        self.calls.append({"event_type": event_type, "user_email": user_email, "metadata": metadata or {}})
        return {"success": True, "eventId": f"evt_{len(self.calls)}"}

    def event_types(self) -> List[str]:
        return [c["event_type"] for c in self.calls]


class FakeRewardsApi:
    """httpx.MockTransport handler for the Loyalteez REST API."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.health_status = 200
        self.health_body: Any = {"status": "ok", "version": "2.1.0"}
        self.event_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/health"):
            if self.health_status != 200:
                return httpx.Response(self.health_status, text="unavailable")
            return httpx.Response(200, json=self.health_body)
        if self.event_status != 200:
            return httpx.Response(self.event_status, json={"success": False, "error": "rejected"})
        return httpx.Response(200, json={"success": True, "eventId": "evt_remote_1"})

    def event_bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith("/manual-event")]


# ============================================================================
# Settings & Application Fixtures
# ============================================================================

@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        SHOPIFY_WEBHOOK_SECRET=TEST_SECRET,
        LOYALTEEZ_API_URL=TEST_API_URL,
        SENTRY_DSN=None,
    )


@pytest.fixture
def fake_sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def rewards_api() -> FakeRewardsApi:
    return FakeRewardsApi()


@pytest.fixture
def loyalteez_client(rewards_api) -> LoyalteezClient:
    return LoyalteezClient(api_url=TEST_API_URL, transport=httpx.MockTransport(rewards_api))


@pytest.fixture
def app(test_settings, loyalteez_client, fake_sender):
    """FastAPI app whose webhook router sends to the fake sender."""
    return create_app(test_settings, loyalteez_client=loyalteez_client, sender=fake_sender)


@pytest.fixture
def client(app) -> TestClient:
    """Create TestClient for HTTP testing."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def supervisor(app):
    return app.state.task_supervisor


# ============================================================================
# Helper Fixtures
# ============================================================================

@pytest.fixture
def signed_webhook():
    """Build (body, headers) for a correctly signed webhook delivery.

    Usage:
        body, headers = signed_webhook("orders/create", {"id": 1})
    """

    def _build(topic: str, payload: Any, secret: str = TEST_SECRET, shop: str = TEST_SHOP):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Topic": topic,
            "X-Shopify-Shop-Domain": shop,
            "X-Shopify-Api-Version": "2025-10",
            "X-Shopify-Webhook-Id": "b54557e4-bdd9-4b37-8a5f-bf7d70bcd043",
            "X-Shopify-Hmac-Sha256": compute_signature(body, secret),
        }
        return body, headers

    return _build


@pytest.fixture
def order_payload() -> Dict[str, Any]:
    return {
        "id": 123456789,
        "order_number": 1001,
        "total_price": "45.00",
        "currency": "USD",
        "test": False,
        "customer": {"id": 987654321, "email": "customer@example.com"},
    }
