"""
Authentication endpoints.

- Email/Password registration & login
- JWT session cookie plus CSRF cookie; the token is also returned for
  clients that send it as a Bearer header
- Logout via the Redis revocation list
"""

from __future__ import annotations

import jwt
import structlog
from fastapi import APIRouter, Depends, Request, Response
from pydantic import EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import (
    decode_jwt,
    extract_token,
    generate_csrf_token,
    hash_password,
    issue_token_for,
    revoke_jwt,
    verify_password,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import Conflict, Unauthenticated
from app.models.user import User
from taskhive_shared.schemas.common import APIResponse, CamelModel, UserSummary

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
    response.set_cookie(key=settings.session_cookie_name, value=token, **COOKIE_KWARGS)
    response.set_cookie(
        key=settings.csrf_cookie_name,
        value=csrf,
        httponly=False,  # JS must read this
        secure=not settings.debug,
        samesite="lax",
        path="/",
        max_age=settings.jwt_expire_minutes * 60,
    )


# ---------------------------------------------------------------------------
# Email/Password Registration
# ---------------------------------------------------------------------------

class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1, max_length=100)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class AuthResponse(APIResponse):
    user: UserSummary
    token: str


def _auth_response(user: User, response: Response, message: str) -> AuthResponse:
    token = issue_token_for(user)
    _set_session_cookies(response, token, generate_csrf_token())
    return AuthResponse(
        message=message,
        user=UserSummary(id=str(user.id), name=user.name, email=user.email),
        token=token,
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user with email/password. The user starts with no organization."""
    email = body.email.lower()
    result = await session.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise Conflict("Email already registered")

    user = User(
        email=email,
        name=body.name.strip(),
        password_hash=hash_password(body.password),
    )
    session.add(user)
    await session.flush()

    log.info("user.registered", user_id=str(user.id), email=email)
    return _auth_response(user, response, "Registration successful")


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    email = body.email.lower()
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not user.password_hash:
        raise Unauthenticated("Invalid email or password")

    if not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", email=email, reason="bad_password")
        raise Unauthenticated("Invalid email or password")

    log.info("auth.login_success", user_id=str(user.id), email=email)
    return _auth_response(user, response, "Login successful")


# ---------------------------------------------------------------------------
# Session Management
# ---------------------------------------------------------------------------

@router.post("/logout", response_model=APIResponse)
async def logout(request: Request, response: Response):
    """Invalidate the current session."""
    token = extract_token(request, request.headers.get("Authorization"))
    if token:
        try:
            payload = decode_jwt(token)
        except jwt.PyJWTError:
            payload = {}  # Token already invalid, just clear cookies
        jti = payload.get("jti")
        if jti:
            await revoke_jwt(jti, ttl_seconds=settings.jwt_expire_minutes * 60)
            log.info("auth.logout", user_id=payload.get("sub"))

    response.delete_cookie(settings.session_cookie_name, path="/")
    response.delete_cookie(settings.csrf_cookie_name, path="/")
    return APIResponse(message="Logged out")
