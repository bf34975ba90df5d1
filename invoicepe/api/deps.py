import logging
import uuid
from typing import Optional

import jwt
from fastapi import Header, HTTPException, status

from invoicepe.config import settings
from invoicepe.services.notification_service import CeleryNotificationQueue, NotificationQueue
from invoicepe.services.phonepe_service import PhonePeService

logger = logging.getLogger(__name__)


async def get_current_user_id(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> uuid.UUID:
    """
    Validate the Supabase bearer token and return the user id (`sub` claim).
    Raises 401 if the header is missing or the token is invalid.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
        )

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    if not settings.supabase_jwt_secret:
        logger.critical("SUPABASE_JWT_SECRET not configured; cannot authenticate requests")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Authentication not configured",
        )

    try:
        claims = jwt.decode(
            token.strip(),
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
        )
        return uuid.UUID(claims.get("sub"))
    except (jwt.PyJWTError, TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )


def get_notification_queue() -> NotificationQueue:
    """Dependency for the notification queue (overridden in tests)."""
    return CeleryNotificationQueue()


def get_phonepe_service() -> PhonePeService:
    """Dependency for the PhonePe client (overridden in tests)."""
    return PhonePeService()
