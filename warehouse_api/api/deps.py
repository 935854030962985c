"""
FastAPI Dependencies

Provides dependency injection for database sessions and the authenticated
actor.

SECURITY NOTES:
- JWT payloads are never logged
- Bearer token is the only auth method; tokens are issued by the identity
  service, the ``sub`` claim is the actor recorded on ledger entries
"""

from typing import Annotated
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
import logging

from warehouse_api.database import get_db
from warehouse_api.config import settings
from warehouse_api.exceptions import Unauthenticated

logger = logging.getLogger(__name__)


# auto_error=False so a missing header becomes our 401 problem response
security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> str:
    """
    Resolve the authenticated principal from the Bearer token.

    Returns:
        The token's ``sub`` claim, used as ``actor_id``
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()

    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        # SECURITY: Don't log token decode errors with details
        logger.warning("JWT validation failed")
        raise Unauthenticated("Could not validate credentials")

    sub = payload.get("sub")
    if sub is None or not str(sub).strip():
        logger.warning("JWT without subject rejected")
        raise Unauthenticated("Could not validate credentials")

    actor_id = str(sub).strip()
    logger.debug("Actor authenticated", extra={"actor_id": actor_id})
    return actor_id


# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[str, Depends(get_current_actor)]
