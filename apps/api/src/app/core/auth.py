"""
Authentication and Authorization

FastAPI dependencies that turn a bearer token into an explicit caller
identity. Every entry point receives its caller through one of these
dependencies; nothing reads identity from ambient state.

- get_current_user: any authenticated app user (role picker, status)
- get_current_reviewer: a reviewer with the ``admin`` role claim

SECURITY NOTE:
- Development test tokens are ONLY accepted when PYTHON_ENV=development
- Production environments MUST set PYTHON_ENV=production
"""

import logging
import os
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.core.security import decode_token

logger = logging.getLogger(__name__)

REVIEWER_ROLE = "admin"

security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for authentication",
)


@dataclass
class CurrentUser:
    """
    Identity extracted from a validated access token.

    Attributes:
        id: User's unique identifier (UUID)
        email: User's email address
        role: Token role claim (``admin`` for reviewers, ``user`` otherwise)
        name: Display name (optional)
    """

    id: UUID
    email: str
    role: str
    name: str | None = None

    @property
    def is_reviewer(self) -> bool:
        return self.role == REVIEWER_ROLE

    def __str__(self) -> str:
        return f"CurrentUser(id={self.id}, email={self.email}, role={self.role})"


def _is_dev_mode_safe() -> bool:
    """
    Check if development test tokens may be accepted.

    Both the settings object and the raw PYTHON_ENV variable must agree
    that this is a development environment.
    """
    env_var = os.getenv("PYTHON_ENV", "").lower()

    is_safe = (
        settings.is_development
        and not settings.is_production
        and env_var not in ("production", "staging")
    )

    if is_safe:
        logger.warning(
            "SECURITY: Development auth mode is ENABLED. This MUST NOT be used in production!"
        )

    return is_safe


_DEVELOPMENT_MODE = _is_dev_mode_safe()

_DEV_REVIEWER = CurrentUser(
    id=UUID("00000000-0000-0000-0000-000000000001"),
    email="reviewer@wizzmo.dev",
    role=REVIEWER_ROLE,
    name="Development Reviewer",
)


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _validate_jwt_token(token: str) -> CurrentUser:
    """
    Validate a JWT and extract its claims.

    Args:
        token: JWT string from the Authorization header

    Returns:
        CurrentUser built from the token claims

    Raises:
        HTTPException 401: If the token is invalid, expired or not an access token
    """
    if _DEVELOPMENT_MODE:
        if token in ["dev-token", "test-token"]:
            logger.debug("Development mode: Using test token")
            return _DEV_REVIEWER

        # UUID tokens act as plain app users for local testing
        try:
            user_id = UUID(token)
            return CurrentUser(
                id=user_id,
                email=f"user-{str(user_id)[:8]}@wizzmo.dev",
                role="user",
                name="Test User",
            )
        except ValueError:
            pass

    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    try:
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise ValueError("Missing 'sub' claim in token")

        token_type = payload.get("type", "access")
        if token_type != "access":
            logger.warning(f"Invalid token type: {token_type}")
            raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

        return CurrentUser(
            id=UUID(user_id_str),
            email=payload.get("email", ""),
            role=payload.get("role", "user"),
            name=payload.get("name"),
        )

    except (ValueError, KeyError) as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """FastAPI dependency returning the authenticated caller."""
    user = await _validate_jwt_token(credentials.credentials)
    logger.debug(f"Authenticated user: {user.id}")
    return user


async def get_current_reviewer(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    FastAPI dependency for reviewer-only endpoints.

    Usage:
        @router.post("/{application_id}/approve")
        async def approve(reviewer: CurrentUser = Depends(get_current_reviewer)):
            ...

    Raises:
        HTTPException 401: If the token is missing, invalid or expired
        HTTPException 403: If the caller is not a reviewer
    """
    user = await _validate_jwt_token(credentials.credentials)

    if not user.is_reviewer:
        logger.warning(
            f"Access denied: User {user.id} has role '{user.role}', "
            f"but '{REVIEWER_ROLE}' is required"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "REVIEWER_ACCESS_REQUIRED",
                "message": "Reviewer access is required for this endpoint.",
            },
        )

    logger.debug(f"Authenticated reviewer: {user.id} ({user.email})")
    return user


__all__ = [
    "CurrentUser",
    "REVIEWER_ROLE",
    "get_current_reviewer",
    "get_current_user",
]
