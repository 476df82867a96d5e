"""FastAPI dependencies for database, policy and admin authentication."""

from typing import AsyncGenerator, Optional

import jwt
from fastapi import Depends, Header
from jwt import ExpiredSignatureError, PyJWTError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import BookingPolicyConfig, settings
from .database import get_async_session
from .exceptions import AuthenticationError, AuthorizationError

ADMIN_ROLE = "admin"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Database dependency that provides async database sessions.

    Yields:
        AsyncSession: Database session
    """
    async for session in get_async_session():
        yield session


def get_booking_policy() -> BookingPolicyConfig:
    """Booking policy built from the process settings."""
    return settings.booking_policy()


def _decode_bearer(authorization: str) -> dict:
    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError("Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError("Invalid authentication scheme")

    try:
        payload = jwt.decode(
            token,
            settings.bearer_token_secret,
            algorithms=["HS256"]
        )
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except PyJWTError as e:
        raise AuthenticationError(f"Token validation failed: {str(e)}")

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError("Invalid token payload")

    return {
        "user_id": user_id,
        "email": payload.get("email"),
        "roles": payload.get("roles", []),
    }


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> dict:
    """
    Authentication dependency that validates Bearer tokens.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        dict: User information from validated token

    Raises:
        AuthenticationError: If token is invalid or missing
    """
    if not authorization:
        raise AuthenticationError("Authorization header missing")
    return _decode_bearer(authorization)


async def get_optional_principal(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> Optional[dict]:
    """Like get_current_user, but anonymous callers yield None."""
    if not authorization:
        return None
    return _decode_bearer(authorization)


def is_admin(principal: Optional[dict]) -> bool:
    return principal is not None and ADMIN_ROLE in (principal.get("roles") or [])


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    """
    Authorization dependency for back-office routes.

    Raises:
        AuthorizationError: If the token lacks the admin role
    """
    if not is_admin(user):
        raise AuthorizationError(required_roles=[ADMIN_ROLE])
    return user
