"""
Relay Exceptions
================

Custom exception types for the webhook relay.

WHY THIS FILE EXISTS
--------------------
The relay has two very different failure phases:
- Synchronous (before the acknowledgment): bad signatures, unparseable bodies.
  These are surfaced to Shopify as 401/500.
- Deferred (after the acknowledgment): rewards API failures. These are logged
  and dropped because the response has already been sent.

Keeping the taxonomy in one place lets the ingress handler and the task
supervisor tell these apart with a single except clause each.

RELATED FILES
-------------
- loyalty_relay/services/loyalteez_client.py: Raises RemoteApiError / RemoteApiTimeoutError
- loyalty_relay/services/webhook_router.py: Raises MalformedPayloadError / PartialRewardError
- loyalty_relay/routers/shopify_webhooks.py: Maps SignatureInvalidError / MalformedPayloadError to responses
"""

from typing import Any, List, Optional


class RelayError(Exception):
    """Base exception for all relay errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SignatureInvalidError(RelayError):
    """Webhook HMAC signature is missing or does not match.

    WHAT:
        Raised inside the ingress handler when verification fails and
        mapped to a 401 there.

    WHY:
        Fail closed: the request is answered with 401 and nothing is scheduled.
    """

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message)


class MalformedPayloadError(RelayError):
    """Webhook body (or a field inside it) could not be parsed.

    WHAT:
        Raised for non-JSON bodies and for values that cannot be interpreted,
        e.g. a `total_price` of "abc".
    """


class RemoteApiError(RelayError):
    """
    Rewards API call failed.

    WHAT:
        Raised when the Loyalteez API returns a non-2xx status or the request
        could not be delivered at all (DNS, connection reset, ...).

    ATTRIBUTES:
        status: HTTP status code, None for network failures
        body: Parsed JSON body if available, otherwise raw text
    """

    def __init__(self, message: str, status: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body


class RemoteApiTimeoutError(RemoteApiError):
    """Rewards API did not answer within the configured timeout.

    Kept distinct from a server rejection so logs can tell a slow API apart
    from one that refused the event.
    """


class PartialRewardError(RemoteApiError):
    """
    Some reward events for one webhook were delivered and a later one failed.

    WHAT:
        Large orders emit a `place_order` event and then a separate
        `shopify_large_order` bonus event. If the bonus call fails the base
        reward has already been issued.

    ATTRIBUTES:
        delivered: RewardEvents that the rewards API accepted
        cause: The RemoteApiError raised by the failing call
    """

    def __init__(self, message: str, delivered: List[Any], cause: RemoteApiError):
        super().__init__(message, status=cause.status, body=cause.body)
        self.delivered = delivered
        self.cause = cause
