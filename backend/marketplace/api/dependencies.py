"""
API dependencies for FastAPI dependency injection.

Provides the database session and the caller identity decoded from the
bearer token.
"""
from typing import Callable, Optional
from uuid import UUID

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marketplace.lib.db import get_db as get_db_session
from marketplace.lib.errors import ForbiddenException, UnauthorizedException
from marketplace.lib.identity import Identity
from marketplace.lib.jwt import get_user_from_token
from marketplace.models import UserRole


# Re-export get_db for convenience
get_db = get_db_session


security = HTTPBearer(auto_error=False)


def identity_from_token(token: str) -> Identity:
    """
    Decode an access token into an Identity.

    Raises:
        UnauthorizedException: Invalid, expired or incomplete token
    """
    try:
        user_id, user_type = get_user_from_token(token)
        return Identity(user_id=UUID(str(user_id)), role=UserRole(str(user_type).upper()))
    except jwt.ExpiredSignatureError:
        raise UnauthorizedException("Authentication token has expired")
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise UnauthorizedException("Invalid authentication token")


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    """Authenticated caller; 401 without a valid bearer token."""
    if credentials is None:
        raise UnauthorizedException("Missing authentication token")
    return identity_from_token(credentials.credentials)


def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[Identity]:
    """
    Caller identity if a valid token was sent, None otherwise.

    Used by public booking routes that link the booking to a signed-in
    customer when there is one.
    """
    if credentials is None:
        return None
    try:
        return identity_from_token(credentials.credentials)
    except UnauthorizedException:
        return None


def require_role(*roles: UserRole) -> Callable[..., Identity]:
    """Dependency factory restricting a route to the given roles."""

    def checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in roles:
            raise ForbiddenException("Insufficient role for this operation")
        return identity

    return checker
