"""Edge / serverless entrypoint.

WHAT:
    The same ASGI application as `loyalty_relay.main`, configured for
    short-lived edge runtimes: no outbound health probe, so `/health` answers
    from the instance alone.

USAGE:
    uvicorn loyalty_relay.edge:app
"""

import logging

from .app_factory import create_app
from .deps import get_settings

logging.basicConfig(level=logging.INFO)

settings = get_settings().model_copy(update={"REMOTE_HEALTH_CHECK": False})

app = create_app(settings)
