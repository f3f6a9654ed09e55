"""ASGI entrypoint for the long-running server.

USAGE:
    uvicorn loyalty_relay.main:app
"""

import logging

from .app_factory import create_app

logging.basicConfig(level=logging.INFO)

app = create_app()
