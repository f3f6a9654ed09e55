"""FastAPI application factory.

Builds the service objects once (rewards client, webhook router, task
supervisor), wires them onto `app.state`, includes routers, and exposes the
root descriptor and healthcheck endpoints.

Importing this module has no side effects. The ASGI entrypoints
(`loyalty_relay.main`, `loyalty_relay.edge`) each call `create_app()` once.
"""

import asyncio
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Optional, Tuple

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from . import schemas
from .deps import Settings, get_settings
from .exceptions import RemoteApiError
from .routers import dev_tools as dev_tools_router
from .routers import shopify_webhooks as shopify_webhooks_router
from .services.loyalteez_client import LoyalteezClient
from .services.task_supervisor import TaskSupervisor
from .services.webhook_router import RewardSender, WebhookRouter
from .telemetry.sentry import capture_message, init_sentry

logger = logging.getLogger(__name__)

SERVICE_NAME = "shopify-loyalty-relay"
SHUTDOWN_DRAIN_SECONDS = 25.0


def _memory_rss_bytes() -> Optional[int]:
    """Peak resident set size of this process, where the platform reports it."""
    if sys.platform.startswith("win"):
        return None
    import resource

    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports KiB, macOS reports bytes
    return usage if sys.platform == "darwin" else usage * 1024


async def _probe_remote(client: LoyalteezClient) -> Tuple[str, Optional[str]]:
    """Return (status, version) reported by the rewards API.

    Any failure or unexpected body yields ("unavailable", None); the health
    endpoint itself never fails because of the remote side.
    """
    try:
        remote = await client.check_health()
    except RemoteApiError as e:
        logger.warning(f"[HEALTH] Loyalteez health check failed: {e.message}")
        return "unavailable", None

    if not isinstance(remote, dict):
        logger.warning(
            f"[HEALTH] Loyalteez health check returned unexpected body: {type(remote).__name__}",
            extra={"body": remote},
        )
        return "unavailable", None

    status_value = remote.get("status")
    version = remote.get("version")
    return (
        "ok" if status_value is None else str(status_value),
        None if version is None else str(version),
    )


def create_app(
    settings: Optional[Settings] = None,
    loyalteez_client: Optional[LoyalteezClient] = None,
    sender: Optional[RewardSender] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to environment / .env)
        loyalteez_client: Rewards API client; built from settings when omitted
        sender: Reward sender for the webhook router; defaults to loyalteez_client

    Raises:
        RuntimeError: if running in production without SHOPIFY_WEBHOOK_SECRET
    """
    settings = settings or get_settings()
    settings.validate_required()

    init_sentry(settings.SENTRY_DSN, environment=settings.ENVIRONMENT, release=settings.RELEASE_VERSION)

    app = FastAPI(
        title="Shopify Loyalty Relay",
        version=__version__,
        description="Relays Shopify webhooks to the Loyalteez rewards API.",
    )

    loyalteez_client = loyalteez_client or LoyalteezClient(
        brand_id=settings.LOYALTEEZ_BRAND_ID,
        api_url=settings.LOYALTEEZ_API_URL,
        event_timeout=settings.EVENT_TIMEOUT_SECONDS,
        health_timeout=settings.HEALTH_TIMEOUT_SECONDS,
    )

    app.state.settings = settings
    app.state.started_at = time.monotonic()
    app.state.loyalteez_client = loyalteez_client
    app.state.webhook_router = WebhookRouter(sender or loyalteez_client)
    app.state.task_supervisor = TaskSupervisor()

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": "Not found", "path": request.url.path, "method": request.method},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "message": str(exc.detail)},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"[APP] Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "message": "Something went wrong" if settings.is_production else str(exc),
            },
        )

    app.include_router(shopify_webhooks_router.router)
    app.include_router(dev_tools_router.router)

    @app.get("/", tags=["Health"], summary="Service descriptor")
    def root():
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": settings.ENVIRONMENT,
            "endpoints": {
                "webhooks": "/webhooks/shopify",
                "health": "/health",
                "test": "/test/reward",
            },
        }

    @app.get(
        "/health",
        response_model=schemas.HealthResponse,
        tags=["Health"],
        summary="Health check",
        description="""
        Reports process uptime and memory plus the rewards API status.

        This endpoint:
        - Does not require authentication
        - Always returns 200 while the process is up
        - Reports remote_api_status "unavailable" if the rewards API probe fails
        """,
    )
    async def health():
        remote_status, remote_version = "unavailable", None
        if settings.REMOTE_HEALTH_CHECK:
            remote_status, remote_version = await _probe_remote(loyalteez_client)

        return schemas.HealthResponse(
            status="healthy",
            uptime_seconds=round(time.monotonic() - app.state.started_at, 3),
            memory_rss_bytes=_memory_rss_bytes(),
            timestamp=datetime.now(timezone.utc).isoformat(),
            environment=settings.ENVIRONMENT,
            remote_api_status=remote_status,
            remote_api_version=remote_version,
        )

    @app.on_event("startup")
    async def startup_event():
        """Log configuration (without secrets)."""
        logger.info(f"[STARTUP] {SERVICE_NAME} {__version__} ({settings.ENVIRONMENT})")
        logger.info(f"[STARTUP] Loyalteez API: {loyalteez_client.api_url}")
        logger.info(f"[STARTUP] Brand ID: {loyalteez_client.brand_id[:10]}...")
        logger.info(
            f"[STARTUP] Shopify webhook secret: {'SET' if settings.SHOPIFY_WEBHOOK_SECRET else 'NOT SET'}"
        )
        if not settings.SHOPIFY_WEBHOOK_SECRET:
            capture_message(
                "[STARTUP] Every webhook will be rejected until SHOPIFY_WEBHOOK_SECRET is set",
                level="warning",
            )

    @app.on_event("shutdown")
    async def shutdown_event():
        """Let acknowledged webhooks finish before closing the HTTP client."""
        supervisor: TaskSupervisor = app.state.task_supervisor
        if supervisor.pending:
            logger.info(f"[SHUTDOWN] Waiting for {supervisor.pending} webhook task(s)")
        try:
            await supervisor.drain(timeout=SHUTDOWN_DRAIN_SECONDS)
        except asyncio.TimeoutError:
            capture_message(
                f"[SHUTDOWN] Abandoning {supervisor.pending} webhook task(s) after {SHUTDOWN_DRAIN_SECONDS}s",
                level="error",
                extra={"pending": supervisor.pending},
            )
        await loyalteez_client.aclose()

    return app
