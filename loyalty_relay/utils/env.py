import logging
import os
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

# Variables the relay reads; only the webhook secret has no usable default
REQUIRED_VARS = ("SHOPIFY_WEBHOOK_SECRET",)
DEFAULTED_VARS = ("LOYALTEEZ_API_URL", "LOYALTEEZ_BRAND_ID", "ENVIRONMENT", "SENTRY_DSN")


def load_env_file(path: Optional[str] = None) -> List[str]:
    """Load a local .env without overriding the real environment.

    WHAT:
        Reads `path` (or the nearest .env above the working directory) into
        os.environ, keeping any variable that is already set, then reports
        which relay variables are still unset. Values are never logged.
    WHY:
        `start_api.py` runs this before Settings is built, so a missing
        SHOPIFY_WEBHOOK_SECRET shows up in the first lines of the log instead
        of as a stream of 401s.

    Returns:
        Names of REQUIRED_VARS that are still unset.
    """
    env_path = path or find_dotenv(usecwd=True)

    if env_path and os.path.isfile(env_path):
        load_dotenv(env_path, override=False)
        logger.info(f"[ENV] Loaded {env_path} (existing variables were NOT overwritten)")
    else:
        logger.debug(f"[ENV] No .env file at {env_path or 'any parent directory'}")

    missing = [name for name in REQUIRED_VARS if not os.getenv(name)]
    if missing:
        logger.warning(f"[ENV] Required variables not set: {', '.join(missing)}", extra={"missing": missing})

    defaulted = [name for name in DEFAULTED_VARS if not os.getenv(name)]
    if defaulted:
        logger.info(f"[ENV] Using defaults for: {', '.join(defaulted)}")

    return missing
