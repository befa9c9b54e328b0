"""
Authentication API endpoints.

Sign-up, sign-in (session cookie + token), sign-out and session lookup.
The session id doubles as a bearer token for non-browser clients.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.config import get_config
from auth.middleware import (
    clear_session_cookie,
    get_optional_identity,
    get_required_identity,
    get_session_id,
    set_session_cookie,
)
from auth.models import Identity
from auth.service import (
    InvalidCredentialsError,
    InvalidSignupError,
    UserExistsError,
    WeakPasswordError,
    authenticate_user,
    create_session,
    create_user,
    invalidate_session,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# =============================================================================
# Request Schemas
# =============================================================================

class SignupRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


# =============================================================================
# Routes
# =============================================================================

@router.post("/signup", status_code=201)
async def signup(request: SignupRequest):
    """Register a new account."""
    try:
        user = create_user(
            name=request.name or "",
            email=request.email or "",
            password=request.password or "",
        )
    except (InvalidSignupError, WeakPasswordError) as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except UserExistsError as e:
        return JSONResponse(status_code=409, content={"error": str(e)})

    return {
        "success": True,
        "message": "Account created successfully",
        "user": {"id": user.id, "name": user.name, "email": user.email},
    }


@router.post("/login")
async def login(body: LoginRequest, request: Request, response: Response):
    """Sign in with email/password; sets the session cookie."""
    try:
        user = authenticate_user(email=body.email, password=body.password)
    except InvalidCredentialsError as e:
        return JSONResponse(status_code=401, content={"error": str(e)})

    config = get_config()
    session = create_session(
        user.id,
        duration_days=config.session_duration_days,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    set_session_cookie(
        response,
        session.id,
        duration_days=config.session_duration_days,
        secure=config.is_production,
    )

    return {
        "success": True,
        "user": user.identity().to_dict(),
        "token": session.id,
        "expires_at": session.expires_at.isoformat(),
    }


@router.post("/logout")
async def logout(request: Request, response: Response):
    """Invalidate the current session, if any."""
    session_id = get_session_id(request)
    if session_id:
        invalidate_session(session_id)
    clear_session_cookie(response)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/session")
async def current_session(identity: Optional[Identity] = Depends(get_optional_identity)):
    """Who is signed in (user is null when nobody is)."""
    return {"user": identity.to_dict() if identity else None}


@router.get("/me")
async def me(identity: Identity = Depends(get_required_identity)):
    """Current user (401 when signed out)."""
    return {"user": identity.to_dict()}
