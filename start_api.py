#!/usr/bin/env python3
"""
Shopify Loyalty Relay Startup Script

Starts the webhook relay with uvicorn. Reads HOST / PORT / ENVIRONMENT from
the environment or a local .env file.
"""

import logging
import sys

import uvicorn

from loyalty_relay.utils.env import load_env_file

logger = logging.getLogger("start_api")


def main():
    """Start the relay server."""
    logging.basicConfig(level=logging.INFO)
    load_env_file()

    # Import after .env is loaded so Settings sees it
    from loyalty_relay.deps import get_settings

    settings = get_settings()
    reload = not settings.is_production

    logger.info("Starting Shopify Loyalty Relay...")
    logger.info(f"   Webhooks:  http://localhost:{settings.PORT}/webhooks/shopify")
    logger.info(f"   Health:    http://localhost:{settings.PORT}/health")
    if reload:
        logger.info(f"   Test:      http://localhost:{settings.PORT}/test/reward")

    try:
        uvicorn.run(
            "loyalty_relay.main:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=reload,
            reload_dirs=["loyalty_relay"] if reload else None,
            log_level="info",
        )
    except KeyboardInterrupt:
        logger.info("Shutting down relay server...")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
