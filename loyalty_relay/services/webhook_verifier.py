"""Shopify webhook signature verification.

WHAT:
    Computes HMAC-SHA256 over the raw request body and compares it with the
    X-Shopify-Hmac-Sha256 header in constant time.

WHY:
    Anyone can POST to a public webhook URL. Only Shopify knows the shared
    secret, so a matching HMAC proves the delivery is genuine.

TIMING:
    `hmac.compare_digest` is constant-time for equal-length inputs but returns
    early when lengths differ. To keep the header length out of the timing
    signal, both the expected and the provided signature are run through one
    more keyed HMAC, so the compared operands are always 32 bytes.

REFERENCES:
    - https://shopify.dev/docs/apps/build/webhooks/subscribe/https#step-5-verify-the-webhook
"""

import base64
import hashlib
import hmac
import logging
from typing import Mapping, Optional

from ..schemas import WebhookRequest

logger = logging.getLogger(__name__)

HMAC_HEADER = "X-Shopify-Hmac-Sha256"
TOPIC_HEADER = "X-Shopify-Topic"
SHOP_DOMAIN_HEADER = "X-Shopify-Shop-Domain"
API_VERSION_HEADER = "X-Shopify-Api-Version"
WEBHOOK_ID_HEADER = "X-Shopify-Webhook-Id"


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Return the base64 HMAC-SHA256 Shopify would send for this body."""
    digest = hmac.new(secret.encode("utf-8"), raw_body or b"", hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify(raw_body: bytes, provided_signature: Optional[str], secret: str) -> bool:
    """Verify that a webhook body was signed with `secret`.

    Args:
        raw_body: Request body bytes exactly as received
        provided_signature: X-Shopify-Hmac-Sha256 header value
        secret: Shared webhook secret

    Returns:
        True if signature is valid, False otherwise. Never raises.
    """
    if not secret:
        logger.error("[SHOPIFY_WEBHOOK] Webhook secret not configured, rejecting")
        return False

    if not provided_signature:
        logger.warning("[SHOPIFY_WEBHOOK] Missing HMAC header")
        return False

    try:
        provided = provided_signature.strip().encode("ascii")
    except (UnicodeEncodeError, AttributeError):
        logger.warning("[SHOPIFY_WEBHOOK] Undecodable HMAC header")
        return False

    key = secret.encode("utf-8")
    expected = compute_signature(raw_body, secret).encode("ascii")

    # Fixed-length operands: compare HMAC(key, expected) with HMAC(key, provided)
    is_valid = hmac.compare_digest(
        hmac.new(key, expected, hashlib.sha256).digest(),
        hmac.new(key, provided, hashlib.sha256).digest(),
    )

    if not is_valid:
        logger.warning("[SHOPIFY_WEBHOOK] Invalid HMAC signature")

    return is_valid


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value or None


def extract_webhook_request(headers: Mapping[str, str], raw_body: bytes) -> WebhookRequest:
    """Build a WebhookRequest from request headers and the untouched body.

    Header lookup works with Starlette's case-insensitive Headers and with a
    plain dict in either canonical or lower case.
    """
    return WebhookRequest(
        topic=_header(headers, TOPIC_HEADER),
        shop_domain=_header(headers, SHOP_DOMAIN_HEADER),
        api_version=_header(headers, API_VERSION_HEADER),
        raw_body=raw_body,
        signature=_header(headers, HMAC_HEADER),
        webhook_id=_header(headers, WEBHOOK_ID_HEADER),
    )
