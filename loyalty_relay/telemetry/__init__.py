"""
Telemetry Module
================

Observability for the webhook relay.

Components:
- sentry.py: Error tracking for background reward processing

Logging itself is plain stdlib `logging`, configured by the ASGI entrypoints (loyalty_relay/main.py, loyalty_relay/edge.py).
"""

from .sentry import capture_exception, capture_message, init_sentry

__all__ = ["capture_exception", "capture_message", "init_sentry"]
