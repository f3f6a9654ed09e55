"""Schemas for webhook ingestion, reward routing and HTTP responses.

WHAT:
    - Internal value objects (dataclasses) that flow through one webhook's
      processing lifetime: WebhookRequest, OrderEvent, CustomerEvent,
      RewardEvent, RewardSummary, ProcessingResult.
    - Pydantic response models for the HTTP surface.

WHY:
    Shopify payloads are loosely typed JSON. Optional fields are validated once
    here, at the parsing boundary, so the router never has to guess whether an
    email is missing, empty or whitespace.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from functools import cached_property
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .exceptions import MalformedPayloadError


# =============================================================================
# ENUMS
# =============================================================================

class WebhookTopic(str, Enum):
    """Shopify webhook topics the relay knows about.

    UNKNOWN is the explicit default arm for topics Shopify may add later.
    """

    ORDERS_CREATE = "orders/create"
    ORDERS_PAID = "orders/paid"
    CUSTOMERS_CREATE = "customers/create"
    CUSTOMERS_UPDATE = "customers/update"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "WebhookTopic":
        """Map a raw X-Shopify-Topic header value to a topic. Never raises."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class RewardEventType(str, Enum):
    """Event names understood by the Loyalteez manual-event endpoint."""

    PLACE_ORDER = "place_order"
    SHOPIFY_LARGE_ORDER = "shopify_large_order"
    ACCOUNT_CREATION = "account_creation"
    REFER_FRIEND = "refer_friend"


class SkipReason(str, Enum):
    NO_EMAIL = "no_email"
    TEST_ORDER = "test_order"
    BELOW_MINIMUM = "below_minimum"
    UNHANDLED_TOPIC = "unhandled_topic"


# =============================================================================
# PARSING HELPERS
# =============================================================================

def _clean_email(value: Any) -> Optional[str]:
    """Return a stripped email or None. Empty strings count as absent."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _parse_decimal(value: Any, field_name: str) -> Decimal:
    """Parse Shopify's string-encoded money values.

    Raises:
        MalformedPayloadError: if the value is not a finite number
    """
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise MalformedPayloadError(f"Invalid {field_name}: {value!r}")
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise MalformedPayloadError(f"Invalid {field_name}: {value!r}")
    if not parsed.is_finite():
        raise MalformedPayloadError(f"Invalid {field_name}: {value!r}")
    return parsed


# =============================================================================
# INBOUND
# =============================================================================

@dataclass(frozen=True)
class WebhookRequest:
    """One inbound webhook delivery, exactly as received.

    `raw_body` must be the bytes Shopify signed. Nothing may decode and
    re-serialize it before verification.
    """

    topic: Optional[str]
    shop_domain: Optional[str]
    api_version: Optional[str]
    raw_body: bytes
    signature: Optional[str]
    webhook_id: Optional[str] = None

    @property
    def webhook_topic(self) -> WebhookTopic:
        return WebhookTopic.parse(self.topic)

    @cached_property
    def parsed_payload(self) -> Dict[str, Any]:
        """JSON object decoded from raw_body on first access.

        Raises:
            MalformedPayloadError: if the body is not a JSON object
        """
        try:
            payload = json.loads(self.raw_body or b"{}")
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedPayloadError(f"Invalid JSON payload: {e}")
        if not isinstance(payload, dict):
            raise MalformedPayloadError("Webhook payload must be a JSON object")
        return payload


@dataclass(frozen=True)
class OrderEvent:
    """Order fields the reward policy cares about (orders/create, orders/paid)."""

    order_id: Any
    total_price: Decimal
    currency: str = "USD"
    is_test: bool = False
    customer_email: Optional[str] = None
    order_number: Any = None
    order_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "OrderEvent":
        customer = payload.get("customer")
        if not isinstance(customer, dict):
            customer = {}

        return cls(
            order_id=payload.get("id"),
            order_number=payload.get("order_number"),
            total_price=_parse_decimal(payload.get("total_price"), "total_price"),
            currency=payload.get("currency") or "USD",
            is_test=bool(payload.get("test", False)),
            customer_email=_clean_email(customer.get("email")),
            order_url=payload.get("order_status_url"),
        )


@dataclass(frozen=True)
class CustomerEvent:
    """Customer fields used for signup rewards (customers/create, customers/update)."""

    customer_id: Any = None
    email: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CustomerEvent":
        return cls(
            customer_id=payload.get("id"),
            email=_clean_email(payload.get("email")),
        )


# =============================================================================
# OUTBOUND / RESULTS
# =============================================================================

@dataclass(frozen=True)
class RewardSummary:
    """LTZ breakdown for one purchase."""

    base: int
    bonus: int
    total: int

    def to_dict(self) -> Dict[str, int]:
        return {"base_ltz": self.base, "bonus_ltz": self.bonus, "total_ltz": self.total}


@dataclass(frozen=True)
class RewardEvent:
    """A single reward issuance sent to the rewards API."""

    event_type: RewardEventType
    user_email: str
    amount: int
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProcessingResult:
    """Outcome of routing one webhook.

    Only ever observed by logs and tests: the HTTP response to Shopify has
    already been sent by the time this exists.
    """

    topic: str
    success: bool = True
    handled: bool = True
    skipped: bool = False
    reason: Optional[SkipReason] = None
    action: Optional[str] = None
    reward_summary: Optional[RewardSummary] = None
    events: List[RewardEvent] = field(default_factory=list)

    @classmethod
    def skip(cls, topic: str, reason: SkipReason, handled: bool = True) -> "ProcessingResult":
        return cls(topic=topic, skipped=True, reason=reason, handled=handled)

    def to_log_dict(self) -> Dict[str, Any]:
        """Flat dict for `extra=` logging and JSON responses."""
        return {
            "topic": self.topic,
            "success": self.success,
            "handled": self.handled,
            "skipped": self.skipped,
            "reason": self.reason.value if self.reason else None,
            "action": self.action,
            "reward": self.reward_summary.to_dict() if self.reward_summary else None,
            "events": [e.event_type.value for e in self.events],
        }


# =============================================================================
# HTTP RESPONSE MODELS
# =============================================================================

class WebhookAck(BaseModel):
    """Immediate acknowledgment returned to Shopify."""

    received: bool = Field(default=True, description="Signature verified and delivery accepted")
    topic: Optional[str] = Field(default=None, description="X-Shopify-Topic", examples=["orders/create"])
    shop: Optional[str] = Field(default=None, description="X-Shopify-Shop-Domain", examples=["store.myshopify.com"])
    timestamp: str = Field(description="ISO-8601 UTC time of acknowledgment")


class ErrorResponse(BaseModel):
    """Error body for 4xx/5xx responses."""

    error: str = Field(description="Short error category", examples=["Unauthorized"])
    message: str = Field(description="Human-readable detail", examples=["Invalid webhook signature"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status", examples=["healthy"])
    uptime_seconds: float = Field(description="Seconds since the app was created")
    memory_rss_bytes: Optional[int] = Field(default=None, description="Peak resident set size, where available")
    timestamp: str = Field(description="ISO-8601 UTC time")
    environment: str = Field(description="Deployment environment", examples=["production"])
    remote_api_status: str = Field(description="Rewards API status, or 'unavailable'", examples=["ok"])
    remote_api_version: Optional[str] = Field(default=None, description="Rewards API version if reported")

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "uptime_seconds": 123.4,
                "memory_rss_bytes": 52428800,
                "timestamp": "2025-01-01T00:00:00+00:00",
                "environment": "production",
                "remote_api_status": "ok",
                "remote_api_version": "1.0.0",
            }
        }
    }


class ManualRewardRequest(BaseModel):
    """Payload for the manual reward endpoint (non-production only)."""

    email: Optional[str] = None
    amount: Optional[float] = None
    eventType: str = "test_reward"


class SimulateRequest(BaseModel):
    """Payload for the order simulation endpoint (non-production only)."""

    email: Optional[str] = None
    amount: Optional[Decimal] = None
    domain: Optional[str] = None
