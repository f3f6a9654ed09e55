"""Development-only endpoints for exercising the reward flow by hand.

WHAT:
    - POST /test/reward: send one manual event straight to the rewards API
    - POST /simulate:    run a synthetic orders/create through the router

WHY:
    Lets a developer check the Loyalteez credentials and the reward math
    without a Shopify store or a signed webhook.

Both return 403 when ENVIRONMENT=production.
"""

import logging
import random

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..deps import Settings, get_app_settings, get_loyalteez_client, get_webhook_router
from ..exceptions import RelayError, RemoteApiError
from ..schemas import ManualRewardRequest, SimulateRequest, WebhookTopic
from ..services import reward_policy
from ..services.loyalteez_client import LoyalteezClient
from ..services.webhook_router import WebhookRouter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Development"])


def _forbidden() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={
            "error": "Forbidden in production",
            "message": "Test endpoint disabled in production",
        },
    )


@router.post("/test/reward")
async def send_test_reward(
    body: ManualRewardRequest,
    settings: Settings = Depends(get_app_settings),
    client: LoyalteezClient = Depends(get_loyalteez_client),
):
    """Send a manual reward event to Loyalteez."""
    if settings.is_production:
        return _forbidden()

    if not body.email:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing email", "message": "Email is required"},
        )

    try:
        result = await client.send_event(
            body.eventType,
            body.email,
            {"test": True, "amount": body.amount or 100, "source": "manual_test"},
        )
    except RemoteApiError as e:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": e.message, "status": e.status, "response": e.body},
        )

    return {"success": True, "result": result}


@router.post("/simulate")
async def simulate_order(
    body: SimulateRequest,
    settings: Settings = Depends(get_app_settings),
    webhook_router: WebhookRouter = Depends(get_webhook_router),
):
    """Route a synthetic orders/create payload inline and report the result."""
    if settings.is_production:
        return _forbidden()

    if not body.email or body.amount is None:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing email or amount"},
        )

    order = {
        "id": random.randint(1, 999_999_999),
        "email": body.email,
        "total_price": str(body.amount),
        "currency": "USD",
        "test": False,
        "customer": {
            "id": random.randint(1, 999_999_999),
            "email": body.email,
            "first_name": "Test",
            "last_name": "User",
        },
    }

    try:
        result = await webhook_router.route(
            WebhookTopic.ORDERS_CREATE.value, order, body.domain or "shopify-simulation"
        )
    except RelayError as e:
        logger.error(f"[SIMULATE] Simulation failed: {e.message}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": e.message},
        )

    estimated = reward_policy.purchase_reward(body.amount).base if body.amount >= 0 else 0
    return {
        "success": True,
        "message": "Simulation processed successfully",
        "reward": {
            "email": body.email,
            "amount": float(body.amount),
            "ltz_estimated": estimated,
        },
        "result": result.to_log_dict(),
    }
