"""
Authentication for TaskHive.

Supports:
- Email/Password credentials (bcrypt)
- JWT sessions carried in a cookie or an ``Authorization: Bearer`` header
- Redis revocation list for logged-out tokens

Token claims identify the caller only. Role and organization decisions are
always re-read from the database by the services.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import Unauthenticated
from app.core.redis import get_redis
from app.models.user import User

log = structlog.get_logger()
settings = get_settings()

bearer_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    email: str,
    role: str,
    organization_id: Optional[uuid.UUID],
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "organization_id": str(organization_id) if organization_id else None,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def issue_token_for(user: User) -> str:
    """Sign a fresh token reflecting the user's current organization and role."""
    token, _jti = create_jwt(
        user_id=user.id,
        email=user.email,
        role=user.role,
        organization_id=user.active_organization_id,
    )
    return token


# ---------------------------------------------------------------------------
# JWT Revocation (Redis)
# ---------------------------------------------------------------------------

async def revoke_jwt(jti: str, ttl_seconds: int = 3600) -> None:
    """Add a JWT ID to the revocation list in Redis."""
    redis = await get_redis()
    await redis.setex(f"jwt:revoked:{jti}", ttl_seconds, "1")


async def is_jwt_revoked(jti: str) -> bool:
    """Check if a JWT ID has been revoked."""
    redis = await get_redis()
    return await redis.exists(f"jwt:revoked:{jti}") > 0


# ---------------------------------------------------------------------------
# CSRF Token
# ---------------------------------------------------------------------------

def generate_csrf_token() -> str:
    """Generate a random CSRF token."""
    return secrets.token_urlsafe(32)


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

class AuthenticatedUser:
    """Container for the authenticated user and the verified token claims."""

    def __init__(self, user: User, claims: dict):
        self.user = user
        self.claims = claims
        self.user_id = user.id
        self.email = user.email

    @property
    def org_id(self) -> Optional[uuid.UUID]:
        """Current organization, read from the stored user rather than the token."""
        return self.user.active_organization_id


def extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return request.cookies.get(settings.session_cookie_name)


async def verify_token(token: str) -> dict:
    """Verify signature, expiry and revocation. Returns the claims."""
    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        raise Unauthenticated("Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise Unauthenticated("Session has been revoked")

    if not payload.get("sub"):
        raise Unauthenticated("Invalid or expired session")
    return payload


async def get_authenticated_user(
    request: Request,
    authorization: Optional[str] = Depends(bearer_header),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """Main authentication dependency. Bearer header first, then session cookie."""
    token = extract_token(request, authorization)
    if not token:
        raise Unauthenticated("Authentication required")

    claims = await verify_token(token)
    try:
        user_id = uuid.UUID(claims["sub"])
    except ValueError:
        raise Unauthenticated("Invalid or expired session")

    user = await session.get(User, user_id)
    if not user:
        log.warning("auth.unknown_subject", user_id=str(user_id))
        raise Unauthenticated("User not found")

    auth = AuthenticatedUser(user=user, claims=claims)
    request.state.auth = auth
    return auth
