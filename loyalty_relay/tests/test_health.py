"""Tests for the service descriptor, /health and the JSON 404."""

import pytest
from fastapi.testclient import TestClient

from loyalty_relay import __version__
from loyalty_relay.app_factory import _probe_remote, create_app


class TestHealth:
    def test_healthy_with_remote_status(self, client, rewards_api):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["environment"] == "test"
        assert data["remote_api_status"] == "ok"
        assert data["remote_api_version"] == "2.1.0"
        assert data["uptime_seconds"] >= 0
        assert "timestamp" in data
        assert "memory_rss_bytes" in data
        assert rewards_api.requests[0].url.path == "/loyalteez-api/health"

    def test_remote_failure_reported_not_raised(self, client, rewards_api):
        rewards_api.health_status = 503

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["remote_api_status"] == "unavailable"
        assert response.json()["remote_api_version"] is None

    def test_non_string_remote_fields_normalized(self, client, rewards_api):
        rewards_api.health_body = {"status": "ok", "version": 2}

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["remote_api_status"] == "ok"
        assert response.json()["remote_api_version"] == "2"

    def test_remote_body_without_fields(self, client, rewards_api):
        rewards_api.health_body = {"status": 1}

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["remote_api_status"] == "1"
        assert response.json()["remote_api_version"] is None

    def test_non_object_remote_body(self, client, rewards_api):
        rewards_api.health_body = ["ok"]

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["remote_api_version"] is None

    @pytest.mark.asyncio
    async def test_unexpected_probe_result_is_unavailable(self):
        class OddClient:
            async def check_health(self):
                return "ok"

        assert await _probe_remote(OddClient()) == ("unavailable", None)

    def test_edge_variant_skips_remote_probe(self, test_settings, loyalteez_client, rewards_api):
        settings = test_settings.model_copy(update={"REMOTE_HEALTH_CHECK": False})
        app = create_app(settings, loyalteez_client=loyalteez_client)

        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["remote_api_status"] == "unavailable"
        assert rewards_api.requests == []


def test_root_descriptor(client):
    response = client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "shopify-loyalty-relay"
    assert data["version"] == __version__
    assert data["endpoints"]["webhooks"] == "/webhooks/shopify"
    assert data["endpoints"]["health"] == "/health"


def test_unknown_route_returns_json_404(client):
    response = client.get("/webhooks/woocommerce")

    assert response.status_code == 404
    assert response.json() == {"error": "Not found", "path": "/webhooks/woocommerce", "method": "GET"}


def test_wrong_method_on_webhook_route(client):
    response = client.get("/webhooks/shopify")

    assert response.status_code == 405
