"""Shopify webhook ingress.

WHAT:
    Single endpoint that receives every Shopify webhook topic, verifies the
    HMAC signature, acknowledges immediately, and hands the payload to the
    webhook router after the response has been sent.

WHY:
    Shopify expects a 2xx within 5 seconds and retries otherwise. Rewarding
    an order means a network call to the Loyalteez API, so reward processing
    must never gate the acknowledgment.

FLOW:
    RECEIVED -> VERIFYING -> REJECTED (401, nothing scheduled)
                          -> ACKNOWLEDGED (200) -> [after response] PROCESSED
                                                                  | PROCESSING_FAILED

    1. Read the raw body once; verify before any parsing
    2. Parse JSON (invalid JSON -> 500, nothing scheduled)
    3. Return {received, topic, shop, timestamp}
    4. Starlette runs the background callback after the body is sent; it
       spawns the routing task on the TaskSupervisor and returns at once

    Outcomes of step 4 are only visible in logs / Sentry.

REFERENCES:
    - https://shopify.dev/docs/apps/build/webhooks/subscribe/https
    - loyalty_relay/services/webhook_verifier.py
    - loyalty_relay/services/webhook_router.py
    - loyalty_relay/services/task_supervisor.py
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from ..deps import Settings, get_app_settings, get_supervisor, get_webhook_router, get_webhook_secret
from ..exceptions import MalformedPayloadError, SignatureInvalidError
from ..schemas import ErrorResponse, WebhookAck, WebhookRequest
from ..services.task_supervisor import TaskSupervisor
from ..services.webhook_router import WebhookRouter
from ..services.webhook_verifier import extract_webhook_request, verify

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Shopify Webhooks"])


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, message=message).model_dump(),
    )


async def schedule_processing(
    supervisor: TaskSupervisor,
    webhook_router: WebhookRouter,
    webhook: WebhookRequest,
    payload: Dict[str, Any],
) -> None:
    """Background callback: hand the webhook to the supervisor and return.

    Runs after the response body has been sent. Must stay async so the task
    is created on the event loop, not in Starlette's threadpool.
    """
    supervisor.spawn(
        webhook_router.route(webhook.topic, payload, webhook.shop_domain),
        name=f"webhook:{webhook.topic or 'unknown'}",
        context={
            "topic": webhook.topic,
            "shop_domain": webhook.shop_domain,
            "webhook_id": webhook.webhook_id,
        },
    )


@router.post(
    "/shopify",
    response_model=WebhookAck,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid or missing signature"},
        500: {"model": ErrorResponse, "description": "Malformed payload or internal error"},
    },
    summary="Receive a Shopify webhook",
)
async def receive_shopify_webhook(
    request: Request,
    secret: str = Depends(get_webhook_secret),
    webhook_router: WebhookRouter = Depends(get_webhook_router),
    supervisor: TaskSupervisor = Depends(get_supervisor),
    settings: Settings = Depends(get_app_settings),
):
    """Verify, acknowledge, then process a Shopify webhook.

    RESPONSE:
        200 once the signature checks out, regardless of what the reward
        processing later does. Shopify should never retry a delivery we
        accepted just because the rewards API was slow.
    """
    try:
        # Raw bytes: Shopify signed exactly these
        raw_body = await request.body()
        webhook = extract_webhook_request(request.headers, raw_body)

        try:
            if not verify(webhook.raw_body, webhook.signature, secret):
                raise SignatureInvalidError()
            payload = webhook.parsed_payload
        except SignatureInvalidError as e:
            logger.warning(
                "[SHOPIFY_WEBHOOK] Rejected delivery - invalid signature",
                extra={"topic": webhook.topic, "shop_domain": webhook.shop_domain},
            )
            return error_response(status.HTTP_401_UNAUTHORIZED, "Unauthorized", e.message)
        except MalformedPayloadError as e:
            logger.error(f"[SHOPIFY_WEBHOOK] Failed to parse JSON: {e.message}")
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", e.message
            )

        logger.info(
            f"[SHOPIFY_WEBHOOK] {webhook.topic} received from {webhook.shop_domain}",
            extra={
                "topic": webhook.topic,
                "shop_domain": webhook.shop_domain,
                "api_version": webhook.api_version or "unknown",
                # No dedup store: Shopify retries of the same delivery share this id
                "webhook_id": webhook.webhook_id,
            },
        )

        ack = WebhookAck(
            received=True,
            topic=webhook.topic,
            shop=webhook.shop_domain,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=ack.model_dump(),
            background=BackgroundTask(schedule_processing, supervisor, webhook_router, webhook, payload),
        )

    except Exception as e:
        logger.exception(f"[SHOPIFY_WEBHOOK] Webhook endpoint error: {e}")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            "Something went wrong" if settings.is_production else str(e),
        )
