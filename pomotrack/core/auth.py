"""
Auth utilities for the pomotrack API.

Validates the bearer session token issued by the OAuth exchange service and
extracts the caller identity. Falls back to the X-User-Id header when
ALLOW_HEADER_AUTH is enabled (local development and tests).
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

import jwt
from fastapi import Header, Request

from pomotrack.core.config import settings
from pomotrack.core.errors import UnauthenticatedError

logger = logging.getLogger("pomotrack")


@dataclass(frozen=True)
class Principal:
    """Authenticated caller."""
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    auth_mechanism: str = "jwt"


def verify_session_token(token: str) -> Dict[str, Any]:
    """
    Verify a session JWT and return its claims.

    Tokens carry the user id in ``sub`` (or ``id`` for tokens minted by the
    legacy exchange endpoint) and optionally ``email``, ``name`` and ``role``.

    Raises:
        UnauthenticatedError: token expired, malformed, or signed with another key
    """
    if not settings.JWT_SECRET:
        logger.warning("JWT_SECRET is not configured; rejecting bearer token")
        raise UnauthenticatedError("Token verification is not configured")

    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_signature": True, "verify_exp": True, "verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise UnauthenticatedError("Invalid token")

    user_id = claims.get("sub") or claims.get("id")
    if not user_id:
        raise UnauthenticatedError("Token has no subject")
    claims["sub"] = str(user_id)
    return claims


def principal_from_claims(claims: Dict[str, Any]) -> Principal:
    return Principal(
        user_id=claims["sub"],
        email=claims.get("email"),
        name=claims.get("name"),
        role=claims.get("role"),
        auth_mechanism="jwt",
    )


def create_session_token(user_id: str, *, email: Optional[str] = None, name: Optional[str] = None,
                         role: Optional[str] = None, expires_in_seconds: int = 7 * 24 * 3600,
                         secret: Optional[str] = None) -> str:
    """Mint a session token (used by tests and local tooling)."""
    import time

    now = int(time.time())
    payload: Dict[str, Any] = {"sub": user_id, "iat": now, "exp": now + expires_in_seconds}
    if email:
        payload["email"] = email
    if name:
        payload["name"] = name
    if role:
        payload["role"] = role
    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _ensure_user(principal: Principal) -> None:
    from pomotrack.features.users.service import get_or_create_user
    get_or_create_user(principal.user_id, email=principal.email, display_name=principal.name)


def get_current_principal(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Dev/test only: caller user ID"),
) -> Principal:
    """
    Resolve the caller from request context.

    Priority:
    1. Bearer JWT from Authorization header
    2. X-User-Id header (only when ALLOW_HEADER_AUTH is on)
    3. UnauthenticatedError

    The user record is created on first sight so activity state has a home.
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        principal = principal_from_claims(verify_session_token(auth_header[7:].strip()))
        _ensure_user(principal)
        request.state.principal = principal
        return principal

    if x_user_id and settings.ALLOW_HEADER_AUTH:
        principal = Principal(user_id=x_user_id.strip(), auth_mechanism="header")
        if not principal.user_id:
            raise UnauthenticatedError("Empty X-User-Id header")
        _ensure_user(principal)
        request.state.principal = principal
        return principal

    raise UnauthenticatedError("Missing Authorization (Bearer token)")


def get_current_user_id(request: Request, x_user_id: Optional[str] = Header(None)) -> str:
    principal = get_current_principal(request, x_user_id)
    return principal.user_id
