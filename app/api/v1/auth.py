"""
Authentication endpoints.

- Email/Password registration & login
- JWT session management (refresh, logout)
"""

from __future__ import annotations

import uuid
from typing import Optional

import jwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    authorization_header,
    create_jwt,
    decode_jwt,
    extract_token,
    generate_csrf_token,
    is_jwt_revoked,
    remaining_ttl,
    revoke_jwt,
    verify_password,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.models.profile import Profile
from app.services.profiles import create_profile, get_profile_by_email
from nexus_shared.schemas.common import Role

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

# Cookie config
COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    response.set_cookie(key=SESSION_COOKIE, value=token, **COOKIE_KWARGS)
    response.set_cookie(
        key=CSRF_COOKIE,
        value=csrf,
        httponly=False,  # JS must read this
        secure=not settings.debug,
        samesite="lax",
        path="/",
        max_age=settings.jwt_expire_minutes * 60,
    )


def _issue_session(response: Response, profile: Profile) -> str:
    token, _jti = create_jwt(profile_id=profile.id, role=profile.role)
    _set_session_cookies(response, token, generate_csrf_token())
    return token


# ---------------------------------------------------------------------------
# Email/Password Registration
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    profile_id: str
    email: str
    role: Role
    access_token: str
    message: str


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a new profile. The first profile becomes the admin."""
    profile = await create_profile(session, body.email, body.password)
    await session.commit()

    token = _issue_session(response, profile)
    log.info("profile.registered", profile_id=str(profile.id), role=profile.role)
    return AuthResponse(
        profile_id=str(profile.id),
        email=profile.email,
        role=profile.role,
        access_token=token,
        message="Registration successful",
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    profile = await get_profile_by_email(session, body.email)

    if not profile or not profile.password_hash:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not verify_password(body.password, profile.password_hash):
        log.warning("auth.login_failure", email=body.email, reason="bad_password")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = _issue_session(response, profile)
    log.info("auth.login_success", profile_id=str(profile.id))
    return AuthResponse(
        profile_id=str(profile.id),
        email=profile.email,
        role=profile.role,
        access_token=token,
        message="Login successful",
    )


# ---------------------------------------------------------------------------
# Session Management
# ---------------------------------------------------------------------------

@router.post("/refresh")
async def refresh_session(
    request: Request,
    response: Response,
    authorization: Optional[str] = Depends(authorization_header),
    session: AsyncSession = Depends(get_session),
):
    """Refresh the current JWT session by issuing a new token."""
    token = extract_token(request, authorization)
    if not token:
        raise HTTPException(status_code=401, detail="No active session")

    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise HTTPException(status_code=401, detail="Session has been revoked")

    profile = await session.get(Profile, uuid.UUID(payload["sub"]))
    if not profile:
        raise HTTPException(status_code=401, detail="Profile not found")

    # Issue new JWT, revoke old one
    new_token = _issue_session(response, profile)
    if jti:
        await revoke_jwt(jti, remaining_ttl(payload))

    return {"message": "Session refreshed", "access_token": new_token}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    authorization: Optional[str] = Depends(authorization_header),
):
    """Invalidate the current session."""
    token = extract_token(request, authorization)
    if token:
        try:
            payload = decode_jwt(token)
        except jwt.PyJWTError:
            payload = {}  # already invalid, just clear cookies
        jti = payload.get("jti")
        if jti:
            await revoke_jwt(jti, remaining_ttl(payload))
            log.info("auth.logout", profile_id=payload.get("sub"))

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    return {"message": "Logged out"}
