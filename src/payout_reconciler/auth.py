"""Authentication and rate limiting helpers for the API."""

import os
import secrets
import logging
from typing import Optional

from fastapi import HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

security = HTTPBearer()
cron_security = HTTPBearer(auto_error=False)

# Rate limiter
limiter = Limiter(key_func=get_remote_address)


async def verify_api_key(credentials: HTTPAuthorizationCredentials = Security(security)) -> str:
    """Verify the API key from the Authorization header.

    Args:
        credentials: HTTP Bearer credentials from the request.

    Returns:
        The verified API key.

    Raises:
        HTTPException: If API key is invalid or not configured.
    """
    api_key = credentials.credentials
    expected_key = os.getenv("API_KEY")
    if not expected_key:
        logger.error("API_KEY environment variable is not configured")
        raise HTTPException(status_code=500, detail="Server configuration error")
    if not secrets.compare_digest(api_key, expected_key):
        raise HTTPException(status_code=401, detail="Invalid API key")
    return api_key


async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(cron_security),
) -> None:
    """Verify the shared cron secret sent by the scheduler.

    Args:
        credentials: HTTP Bearer credentials from the request, if any.

    Raises:
        HTTPException: If the secret is missing, wrong, or not configured.
    """
    expected_secret = os.getenv("CRON_SECRET")
    if not expected_secret:
        logger.error("CRON_SECRET environment variable is not configured")
        raise HTTPException(status_code=500, detail="Server configuration error")
    if credentials is None or not secrets.compare_digest(credentials.credentials, expected_secret):
        logger.warning(
            f"Unauthorized cron trigger attempt (authorization header present: {credentials is not None})"
        )
        raise HTTPException(status_code=401, detail="Unauthorized")
