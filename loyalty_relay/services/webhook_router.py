"""Webhook routing: Shopify topic + payload -> reward events.

WHAT:
    Dispatches a verified webhook to the handler for its topic, applies skip
    conditions in a fixed order, computes rewards via the reward policy, and
    delivers them through the rewards sender.

FLOW (orders/create):
    1. Customer email present?     else skip: no_email
    2. Not a test order?           else skip: test_order
    3. Total >= 0.01?              else skip: below_minimum
    4. Send `place_order` with the base amount
    5. If bonus > 0, send a separate `shopify_large_order` event

    The first failing check decides the reason: a test order without an
    email reports no_email.

    Base and bonus are separate events so the rewards ledger keeps the
    breakdown. If the bonus call fails after the base call succeeded,
    PartialRewardError is raised with the delivered events attached.

REFERENCES:
    - loyalty_relay/services/reward_policy.py
    - loyalty_relay/services/loyalteez_client.py
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from ..exceptions import MalformedPayloadError, PartialRewardError, RemoteApiError
from ..schemas import (
    CustomerEvent,
    OrderEvent,
    ProcessingResult,
    RewardEvent,
    RewardEventType,
    SkipReason,
    WebhookTopic,
)
from . import reward_policy

logger = logging.getLogger(__name__)


class RewardSender(Protocol):
    """Anything that can deliver a reward event (LoyalteezClient in production)."""

    async def send_event(
        self,
        event_type: str,
        user_email: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        ...


Handler = Callable[[Dict[str, Any], Optional[str]], Awaitable[ProcessingResult]]


class WebhookRouter:
    """Maps (topic, payload) to reward events.

    Stateless between calls; one instance is shared by all requests.
    """

    def __init__(self, sender: RewardSender):
        self.sender = sender
        self._handlers: Dict[WebhookTopic, Handler] = {
            WebhookTopic.ORDERS_CREATE: self.handle_order_created,
            WebhookTopic.ORDERS_PAID: self.handle_order_paid,
            WebhookTopic.CUSTOMERS_CREATE: self.handle_customer_created,
            WebhookTopic.CUSTOMERS_UPDATE: self.handle_customer_updated,
        }
        missing = [t for t in WebhookTopic if t is not WebhookTopic.UNKNOWN and t not in self._handlers]
        if missing:
            raise RuntimeError(f"No handler registered for topics: {missing}")

    async def route(
        self,
        topic: Optional[str],
        payload: Dict[str, Any],
        shop_domain: Optional[str] = None,
    ) -> ProcessingResult:
        """Process one webhook.

        Args:
            topic: Raw X-Shopify-Topic value
            payload: Parsed JSON body
            shop_domain: X-Shopify-Shop-Domain, forwarded as the reward `domain`

        Raises:
            MalformedPayloadError: if payload values cannot be interpreted
            RemoteApiError: if the rewards API rejects an event
        """
        webhook_topic = WebhookTopic.parse(topic)
        logger.info(f"[WEBHOOK_ROUTER] Processing {topic} from {shop_domain or 'unknown'}")

        handler = self._handlers.get(webhook_topic)
        if handler is None:
            logger.info(f"[WEBHOOK_ROUTER] Unhandled webhook topic: {topic}")
            return ProcessingResult.skip(topic or "", SkipReason.UNHANDLED_TOPIC, handled=False)

        if not isinstance(payload, dict):
            raise MalformedPayloadError(f"{topic} payload must be a JSON object")

        return await handler(payload, shop_domain)

    # =========================================================================
    # TOPIC HANDLERS
    # =========================================================================

    async def handle_order_created(
        self, payload: Dict[str, Any], shop_domain: Optional[str]
    ) -> ProcessingResult:
        """orders/create: reward the purchase."""
        topic = WebhookTopic.ORDERS_CREATE.value
        order = OrderEvent.from_payload(payload)

        if not order.customer_email:
            logger.info("[WEBHOOK_ROUTER] No customer email, skipping reward", extra={"order_id": order.order_id})
            return ProcessingResult.skip(topic, SkipReason.NO_EMAIL)

        if order.is_test:
            logger.info("[WEBHOOK_ROUTER] Test order, skipping reward", extra={"order_id": order.order_id})
            return ProcessingResult.skip(topic, SkipReason.TEST_ORDER)

        if order.total_price < reward_policy.MINIMUM_ORDER_TOTAL:
            logger.info(
                "[WEBHOOK_ROUTER] Order below minimum, skipping reward",
                extra={"order_id": order.order_id, "total_price": str(order.total_price)},
            )
            return ProcessingResult.skip(topic, SkipReason.BELOW_MINIMUM)

        logger.info(
            f"[WEBHOOK_ROUTER] Order #{order.order_number}: {order.total_price} {order.currency} "
            f"by {order.customer_email}"
        )

        summary = reward_policy.purchase_reward(order.total_price)
        common = {
            "order_id": order.order_id,
            "order_total": float(order.total_price),
            "order_url": order.order_url,
            "currency": order.currency,
            "domain": shop_domain,
        }

        events = [
            RewardEvent(
                event_type=RewardEventType.PLACE_ORDER,
                user_email=order.customer_email,
                amount=summary.base,
                metadata={**common, "ltz_earned": summary.base},
            )
        ]
        if summary.bonus > 0:
            events.append(
                RewardEvent(
                    event_type=RewardEventType.SHOPIFY_LARGE_ORDER,
                    user_email=order.customer_email,
                    amount=summary.bonus,
                    metadata={**common, "bonus_ltz": summary.bonus},
                )
            )

        delivered = await self._deliver(events)

        logger.info(f"[WEBHOOK_ROUTER] Rewarded {order.customer_email}: {summary.total} LTZ")
        return ProcessingResult(topic=topic, reward_summary=summary, events=delivered)

    async def handle_order_paid(
        self, payload: Dict[str, Any], shop_domain: Optional[str]
    ) -> ProcessingResult:
        """orders/paid: acknowledge payment, no reward."""
        logger.info(f"[WEBHOOK_ROUTER] Order #{payload.get('order_number')} paid")
        return ProcessingResult(topic=WebhookTopic.ORDERS_PAID.value, action="payment_confirmed")

    async def handle_customer_created(
        self, payload: Dict[str, Any], shop_domain: Optional[str]
    ) -> ProcessingResult:
        """customers/create: send the welcome bonus."""
        topic = WebhookTopic.CUSTOMERS_CREATE.value
        customer = CustomerEvent.from_payload(payload)

        if not customer.email:
            logger.info("[WEBHOOK_ROUTER] No customer email, skipping welcome bonus")
            return ProcessingResult.skip(topic, SkipReason.NO_EMAIL)

        amount = reward_policy.signup_reward()
        event = RewardEvent(
            event_type=RewardEventType.ACCOUNT_CREATION,
            user_email=customer.email,
            amount=amount,
            metadata={
                "customer_id": customer.customer_id,
                "ltz_earned": amount,
                "domain": shop_domain,
            },
        )
        delivered = await self._deliver([event])

        logger.info(f"[WEBHOOK_ROUTER] Welcome bonus sent to {customer.email}")
        return ProcessingResult(topic=topic, events=delivered)

    async def handle_customer_updated(
        self, payload: Dict[str, Any], shop_domain: Optional[str]
    ) -> ProcessingResult:
        """customers/update: profile sync acknowledgment, no reward."""
        customer = CustomerEvent.from_payload(payload)
        logger.info(f"[WEBHOOK_ROUTER] Customer updated: {customer.email}")
        return ProcessingResult(topic=WebhookTopic.CUSTOMERS_UPDATE.value, action="profile_synced")

    async def reward_referral(
        self, email: str, referred_email: str, shop_domain: Optional[str] = None
    ) -> RewardEvent:
        """Send a `refer_friend` reward to the referrer.

        Not bound to a Shopify topic; for callers that detect referrals
        (e.g. a referral code on customers/update).
        """
        amount = reward_policy.referral_reward()
        event = RewardEvent(
            event_type=RewardEventType.REFER_FRIEND,
            user_email=email,
            amount=amount,
            metadata={
                "referred_email": referred_email,
                "ltz_earned": amount,
                "domain": shop_domain,
            },
        )
        await self._deliver([event])
        return event

    # =========================================================================
    # DELIVERY
    # =========================================================================

    async def _deliver(self, events: List[RewardEvent]) -> List[RewardEvent]:
        """Send events in order, stopping at the first failure."""
        delivered: List[RewardEvent] = []
        for event in events:
            try:
                await self.sender.send_event(event.event_type.value, event.user_email, event.metadata)
            except RemoteApiError as e:
                if delivered:
                    raise PartialRewardError(
                        f"{event.event_type.value} failed after "
                        f"{', '.join(d.event_type.value for d in delivered)} was delivered: {e.message}",
                        delivered=delivered,
                        cause=e,
                    )
                raise
            delivered.append(event)
        return delivered
