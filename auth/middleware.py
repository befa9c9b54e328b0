# auth/middleware.py
"""
FastAPI authentication bridge.

Provides:
- Session cookie / bearer token handling
- Identity resolution for history operations
- Helper dependencies for route handlers
"""

from __future__ import annotations

from typing import Optional
from fastapi import Request, Response

from app.errors import Unauthorized
from auth.models import Identity
from auth.service import get_current_user

# Cookie configuration
SESSION_COOKIE_NAME = "imagecheck_session"
SECONDS_PER_DAY = 24 * 60 * 60


def get_session_id(request: Request) -> Optional[str]:
    """
    Extract session ID from the request.

    The session cookie wins; API clients may send the same value as
    ``Authorization: Bearer <session id>``.
    """
    session_id = request.cookies.get(SESSION_COOKIE_NAME)
    if session_id:
        return session_id

    authorization = request.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def set_session_cookie(
    response: Response,
    session_id: str,
    duration_days: int,
    secure: bool = False,
) -> None:
    """Set the HTTP-only session cookie; it lives as long as the session."""
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        max_age=duration_days * SECONDS_PER_DAY,
        httponly=True,  # Prevent JS access
        samesite="lax",  # CSRF protection
        secure=secure,
    )


def clear_session_cookie(response: Response) -> None:
    """Clear session cookie from response."""
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        httponly=True,
        samesite="lax",
    )


def resolve_identity(request: Request) -> Optional[Identity]:
    """
    Resolve the caller's identity, or None when unauthenticated.

    Idempotent and side-effect free apart from expired-session cleanup
    inside the session lookup.
    """
    user = get_current_user(get_session_id(request))
    if user is None:
        return None
    return user.identity()


async def get_optional_identity(request: Request) -> Optional[Identity]:
    """FastAPI dependency: identity if logged in, else None."""
    return resolve_identity(request)


async def get_required_identity(request: Request) -> Identity:
    """
    FastAPI dependency: identity (required).

    Raises Unauthorized (401) if not logged in. There is no anonymous
    fallback identity.
    """
    identity = resolve_identity(request)
    if identity is None:
        raise Unauthorized("Authentication required")
    return identity
