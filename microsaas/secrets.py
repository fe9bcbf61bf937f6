"""Secret lookup via OS keyring with environment fallback (SMTP password)."""

import logging
import os

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)
SERVICE_NAME = "microsaas"


def get_secret(name: str) -> str | None:
    """Resolve secret: keyring -> os.environ. Sync, safe at startup."""
    try:
        value = keyring.get_password(SERVICE_NAME, name)
        if value:
            return value
    except KeyringError:
        logger.debug("keyring lookup failed for %s, falling back to env", name)
    return os.environ.get(name)
