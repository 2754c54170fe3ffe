"""
JWT Verification

This module is responsible for:

1. Verifying bearer JWTs issued by the identity provider for logged-in users.
2. Producing a validated `UserContext` object to downstream routes.

Security Model
--------------
- Searching works without a token; a token only enables search history.
  On `/search` an invalid token is logged and the caller is served as
  anonymous, so history never blocks a search.
- On the history endpoints a token that is present but invalid is rejected.
- Tokens carry `sub`, `iat` and `exp` claims and the `hadith-search` audience.
"""

from __future__ import annotations

import jwt
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..config import settings
from .models import UserContext

logger = logging.getLogger("hadith.auth")


# ---------------------------------------------------------------------
# Security Scheme
# ---------------------------------------------------------------------

security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------

def _decode_user_token(token: str) -> dict:
    """
    Decode and validate a user JWT.

    Raises
    ------
    Various JWT-related exceptions, which the public wrapper handles.
    """
    return jwt.decode(
        token,
        settings.jwt_secret.get_secret_value(),
        algorithms=[settings.jwt_algo],
        audience=settings.jwt_audience,
        options={
            "require": ["sub", "iat", "exp"],
        },
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
    )


# ---------------------------------------------------------------------
# Public Authentication Dependencies
# ---------------------------------------------------------------------

def verify_user_token(token: str) -> UserContext:
    """
    Verify a user JWT and construct a UserContext.

    Returns
    -------
    UserContext

    Raises
    ------
    HTTPException(401) for invalid or expired tokens.
    """
    try:
        payload = _decode_user_token(token)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired.")
    except jwt.InvalidAudienceError:
        raise _unauthorized("Invalid token audience.")
    except jwt.InvalidTokenError:
        raise _unauthorized("Invalid or malformed token.")

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise _unauthorized("Token missing 'sub' claim.")

    email = payload.get("email")
    return UserContext(
        user_id=user_id,
        email=email if isinstance(email, str) else None,
    )


def optional_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[UserContext]:
    """
    Return the caller's UserContext, or None for anonymous requests.
    """
    if creds is None:
        return None
    return verify_user_token(creds.credentials)


def lenient_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[UserContext]:
    """
    Like `optional_user`, but a bad token is logged and treated as anonymous.
    """
    if creds is None:
        return None
    try:
        return verify_user_token(creds.credentials)
    except HTTPException as exc:
        logger.warning("Ignoring bearer token on anonymous-capable route: %s", exc.detail)
        return None


def require_user(
    user: Optional[UserContext] = Depends(optional_user),
) -> UserContext:
    """
    Like `optional_user`, but anonymous requests get a 401.
    """
    if user is None:
        raise _unauthorized("User not logged in")
    return user
