"""
Sentry Error Tracking
=====================

Centralized error tracking for the webhook relay.

Most failures in this service happen after Shopify has already been answered
(rewards API outages, partial deliveries), so nothing ever shows up as a 5xx.
Sentry is where those background failures become visible.

Related files:
- loyalty_relay/app_factory.py: Initializes Sentry in create_app()
- loyalty_relay/services/task_supervisor.py: Captures background task failures

Environment Variables:
- SENTRY_DSN: Sentry project DSN (Sentry stays disabled without it)
- ENVIRONMENT: Environment name (production, staging, development)
- RELEASE_VERSION: Release identifier (set via CI/CD)
"""

from __future__ import annotations

import logging
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger(__name__)


def init_sentry(
    dsn: Optional[str],
    environment: str = "development",
    release: Optional[str] = None,
) -> bool:
    """
    Initialize Sentry SDK for FastAPI.

    Should be called once during application startup, before the app is built.

    Returns:
        True if Sentry was initialized, False if disabled or initialization failed.
    """
    if not dsn:
        return False

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                LoggingIntegration(
                    level=logging.INFO,        # INFO+ as breadcrumbs
                    event_level=logging.ERROR,  # ERROR+ as events
                ),
            ],
            traces_sample_rate=0.1,
            # Customer emails are in our logs; don't attach request PII on top
            send_default_pii=False,
            release=release,
        )

        logger.debug(f"[SENTRY] Initialized for {environment} environment")
        return True

    except Exception as e:
        logger.error(f"[SENTRY] Failed to initialize: {e}")
        return False


def capture_exception(exception: BaseException, extra: Optional[dict] = None) -> None:
    """
    Manually capture an exception to Sentry.

    Use this for exceptions that are caught and handled but should still
    be tracked, e.g. a rewards API failure in a background task.

    Args:
        exception: The exception to capture
        extra: Additional context to attach to the event
    """
    if not sentry_sdk.is_initialized():
        return

    try:
        with sentry_sdk.new_scope() as scope:
            for key, value in (extra or {}).items():
                scope.set_extra(key, value)
            sentry_sdk.capture_exception(exception)
    except Exception as e:
        logger.error(f"[SENTRY] Failed to capture exception: {e}")


def capture_message(message: str, level: str = "info", extra: Optional[dict] = None) -> None:
    """
    Capture a message to Sentry.

    Example:
        capture_message(
            "Webhook secret missing, all deliveries will be rejected",
            level="warning",
        )
    """
    if not sentry_sdk.is_initialized():
        logger.log(logging.getLevelName(level.upper()), f"Message (Sentry disabled): {message}")
        return

    try:
        with sentry_sdk.new_scope() as scope:
            for key, value in (extra or {}).items():
                scope.set_extra(key, value)
            sentry_sdk.capture_message(message, level=level)
    except Exception as e:
        logger.error(f"[SENTRY] Failed to capture message: {e}")
