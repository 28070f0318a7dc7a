from fastapi import Header
from typing import Optional
import hmac
import logging

from app.core.config import settings
from app.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """Authenticate the scheduler calling the batch job endpoint.

    Expects ``Authorization: Bearer <CRON_SECRET>``. With no secret configured
    every call is rejected.
    """
    if not settings.CRON_SECRET:
        logger.error("CRON_SECRET is not configured; rejecting scheduled job call")
        raise AuthenticationError("Unauthorized")

    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        logger.warning("Rejected scheduled job call with invalid Authorization header")
        raise AuthenticationError("Unauthorized")
