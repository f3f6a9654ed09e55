"""Unit tests for payload parsing at the webhook boundary."""

from decimal import Decimal

import pytest

from loyalty_relay.exceptions import MalformedPayloadError
from loyalty_relay.schemas import (
    CustomerEvent,
    OrderEvent,
    ProcessingResult,
    RewardSummary,
    SkipReason,
    WebhookRequest,
    WebhookTopic,
)


class TestWebhookTopic:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("orders/create", WebhookTopic.ORDERS_CREATE),
            ("orders/paid", WebhookTopic.ORDERS_PAID),
            ("customers/create", WebhookTopic.CUSTOMERS_CREATE),
            ("customers/update", WebhookTopic.CUSTOMERS_UPDATE),
            (" ORDERS/CREATE ", WebhookTopic.ORDERS_CREATE),
            ("products/create", WebhookTopic.UNKNOWN),
            ("unknown", WebhookTopic.UNKNOWN),
            ("", WebhookTopic.UNKNOWN),
            (None, WebhookTopic.UNKNOWN),
        ],
    )
    def test_parse(self, raw, expected):
        assert WebhookTopic.parse(raw) is expected


class TestWebhookRequest:
    def _request(self, body: bytes) -> WebhookRequest:
        return WebhookRequest(
            topic="orders/create", shop_domain=None, api_version=None, raw_body=body, signature=None
        )

    def test_parsed_payload_is_cached(self):
        request = self._request(b'{"id": 1}')
        assert request.parsed_payload == {"id": 1}
        assert request.parsed_payload is request.parsed_payload

    def test_empty_body_parses_as_empty_object(self):
        assert self._request(b"").parsed_payload == {}

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b'"text"', b"\xff\xfe"])
    def test_malformed_body(self, body):
        with pytest.raises(MalformedPayloadError):
            self._request(body).parsed_payload

    def test_is_immutable(self):
        request = self._request(b"{}")
        with pytest.raises(AttributeError):
            request.raw_body = b"changed"


class TestOrderEvent:
    def test_from_payload(self):
        order = OrderEvent.from_payload(
            {
                "id": 42,
                "order_number": 1001,
                "total_price": "99.999",
                "currency": "CAD",
                "test": False,
                "order_status_url": "https://status",
                "customer": {"id": 7, "email": " a@b.com "},
            }
        )

        assert order.order_id == 42
        assert order.total_price == Decimal("99.999")
        assert order.currency == "CAD"
        assert order.is_test is False
        assert order.customer_email == "a@b.com"
        assert order.order_url == "https://status"

    def test_defaults_for_missing_fields(self):
        order = OrderEvent.from_payload({"id": 1})

        assert order.total_price == Decimal("0")
        assert order.currency == "USD"
        assert order.is_test is False
        assert order.customer_email is None
        assert order.order_url is None

    def test_numeric_total_accepted(self):
        assert OrderEvent.from_payload({"total_price": 12.5}).total_price == Decimal("12.5")

    @pytest.mark.parametrize("total", ["abc", "NaN", "Infinity", True, [1]])
    def test_invalid_total(self, total):
        with pytest.raises(MalformedPayloadError):
            OrderEvent.from_payload({"total_price": total})

    def test_empty_email_is_absent(self):
        assert OrderEvent.from_payload({"customer": {"email": ""}}).customer_email is None


class TestCustomerEvent:
    def test_from_payload(self):
        customer = CustomerEvent.from_payload({"id": 9, "email": "c@d.com"})
        assert customer.customer_id == 9
        assert customer.email == "c@d.com"

    def test_non_string_email_is_absent(self):
        assert CustomerEvent.from_payload({"email": 123}).email is None


def test_processing_result_log_dict():
    result = ProcessingResult(topic="orders/create", reward_summary=RewardSummary(500, 0, 500))
    assert result.to_log_dict()["reward"] == {"base_ltz": 500, "bonus_ltz": 0, "total_ltz": 500}

    skipped = ProcessingResult.skip("orders/create", SkipReason.TEST_ORDER)
    assert skipped.to_log_dict()["reason"] == "test_order"
    assert skipped.success is True
