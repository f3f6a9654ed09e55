"""Loyalteez rewards API client.

WHAT:
    Sends reward events to the Loyalteez manual-event endpoint and probes its
    health endpoint.

WHY:
    The webhook router decides *what* to reward; this client owns the wire
    format, timeouts and error mapping for *how* it reaches the rewards API.

HOW:
    POST {api_url}/loyalteez-api/manual-event
    {
        "brandId": "...",
        "eventType": "place_order",
        "userEmail": "customer@example.com",
        "domain": "store.myshopify.com",
        "sourceUrl": "...",            # omitted when unknown
        "metadata": {"platform": "shopify", "timestamp": "...", ...}
    }

    Single attempt, no retries. Failures raise RemoteApiError (non-2xx or
    network) or RemoteApiTimeoutError.

REFERENCES:
    - https://docs.loyalteez.app/api/rest-api
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from ..exceptions import RemoteApiError, RemoteApiTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.loyalteez.app"
DEFAULT_BRAND_ID = "0x0000000000000000000000000000000000000000"
DEFAULT_DOMAIN = "shopify-store"
PLATFORM = "shopify"

EVENT_TIMEOUT_SECONDS = 10.0
HEALTH_TIMEOUT_SECONDS = 5.0


class LoyalteezClient:
    """Async client for the Loyalteez REST API.

    Usage:
        ```python
        client = LoyalteezClient(brand_id="0xabc...", api_url="https://api.loyalteez.app")
        await client.send_event("place_order", "customer@example.com", {"order_id": 1})
        await client.aclose()
        ```
    """

    def __init__(
        self,
        brand_id: Optional[str] = None,
        api_url: Optional[str] = None,
        event_timeout: float = EVENT_TIMEOUT_SECONDS,
        health_timeout: float = HEALTH_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            brand_id: Brand wallet address (defaults to the zero address for sandbox use)
            api_url: API base URL (defaults to mainnet)
            event_timeout: Seconds before an event submission times out
            health_timeout: Seconds before a health probe times out
            transport: Optional httpx transport, used by tests
        """
        self.brand_id = brand_id or DEFAULT_BRAND_ID
        self.api_url = (api_url or DEFAULT_API_URL).rstrip("/")
        self.endpoint = f"{self.api_url}/loyalteez-api/manual-event"
        self.health_endpoint = f"{self.api_url}/loyalteez-api/health"
        self.event_timeout = event_timeout
        self.health_timeout = health_timeout
        self._http = httpx.AsyncClient(
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    def build_payload(
        self,
        event_type: str,
        user_email: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Build the manual-event request body.

        Caller metadata is merged after `platform` and `timestamp`, so a caller
        may override either. Top-level keys with None values are dropped.
        """
        metadata = dict(metadata or {})

        payload = {
            "brandId": self.brand_id,
            "eventType": event_type,
            "userEmail": user_email,
            "domain": metadata.get("domain") or DEFAULT_DOMAIN,
            "sourceUrl": metadata.get("sourceUrl") or metadata.get("order_url"),
            "metadata": {
                "platform": PLATFORM,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                **metadata,
            },
        }

        return {key: value for key, value in payload.items() if value is not None}

    async def send_event(
        self,
        event_type: str,
        user_email: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send a reward event to Loyalteez.

        Args:
            event_type: Event identifier (e.g. 'place_order')
            user_email: Customer email address
            metadata: Additional data about the event

        Returns:
            Parsed JSON response (at least `success`, optionally `eventId`, `reward`)

        Raises:
            RemoteApiTimeoutError: if the API does not answer in time
            RemoteApiError: on non-2xx responses or network failures
        """
        payload = self.build_payload(event_type, user_email, metadata)

        logger.info(
            f"[LOYALTEEZ] Sending {event_type} for {user_email}",
            extra={
                "event_type": event_type,
                "user_email": user_email,
                "brand_id": self.brand_id,
                "domain": payload.get("domain"),
                "metadata_keys": sorted((metadata or {}).keys()),
            },
        )

        try:
            response = await self._http.post(
                self.endpoint,
                json=payload,
                timeout=self.event_timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"[LOYALTEEZ] Timeout sending {event_type} after {self.event_timeout}s")
            raise RemoteApiTimeoutError(f"Loyalteez API timeout: {e}")
        except httpx.RequestError as e:
            logger.error(f"[LOYALTEEZ] Network error sending {event_type}: {e}")
            raise RemoteApiError(f"Loyalteez API network error: {e}")

        body = self._parse_body(response)

        if not response.is_success:
            logger.error(
                f"[LOYALTEEZ] API error: {response.status_code}",
                extra={"event_type": event_type, "user_email": user_email, "response": body},
            )
            raise RemoteApiError(
                f"Loyalteez API error: {response.status_code} {response.reason_phrase}",
                status=response.status_code,
                body=body,
            )

        if not isinstance(body, dict):
            body = {"success": True, "raw": body}

        logger.info(
            f"[LOYALTEEZ] Event accepted: {event_type}",
            extra={
                "success": body.get("success"),
                "event_id": body.get("eventId"),
                "reward": body.get("reward"),
            },
        )
        return body

    async def check_health(self) -> Dict[str, Any]:
        """Probe the rewards API health endpoint.

        Raises:
            RemoteApiTimeoutError / RemoteApiError: if the probe fails
        """
        try:
            response = await self._http.get(self.health_endpoint, timeout=self.health_timeout)
        except httpx.TimeoutException as e:
            raise RemoteApiTimeoutError(f"Loyalteez health check timeout: {e}")
        except httpx.RequestError as e:
            raise RemoteApiError(f"Loyalteez health check failed: {e}")

        body = self._parse_body(response)
        if not response.is_success:
            raise RemoteApiError(
                f"Loyalteez health check returned {response.status_code}",
                status=response.status_code,
                body=body,
            )
        return body if isinstance(body, dict) else {"status": "ok"}

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text
