"""
Authentication for the Team Tasks API.

Supports:
- Password hashing (bcrypt, salted, constant-time verification)
- Opaque server-side sessions carried in a cookie or a Bearer header
- The ``AuthenticatedUser`` identity established once per request
"""

from __future__ import annotations

import secrets
import uuid
from typing import Optional

import bcrypt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session
from app.core.errors import UnauthorizedError
from app.core.sessions import SessionManager, get_session_manager
from app.models.user import User

log = structlog.get_logger()
settings = get_settings()

auth_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with the configured cost factor."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # Malformed stored hash or over-long password
        return False


_dummy_hash: Optional[str] = None


def burn_password_check(password: str) -> None:
    """Spend one bcrypt verification so unknown usernames take as long as wrong passwords."""
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password(secrets.token_urlsafe(16))
    verify_password(password, _dummy_hash)


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
    """The caller's identity, resolved once from the session and passed explicitly."""

    __slots__ = ("user", "user_id", "username", "session_id")

    def __init__(self, user: User, session_id: str):
        self.user = user
        self.user_id: uuid.UUID = user.id
        self.username: str = user.username
        self.session_id = session_id


def extract_session_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    """Bearer header first (non-browser clients), then the session cookie."""
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    return request.cookies.get(settings.session_cookie_name)


async def resolve_user(
    token: Optional[str], sessions: SessionManager, session: AsyncSession
) -> Optional[User]:
    """Map a session token to a live user, or None."""
    user_id = await sessions.resolve_session(token)
    if user_id is None:
        return None
    user = await session.get(User, user_id)
    if user is None:
        # Account deleted while the session was alive
        await sessions.destroy_session(token)
    return user


async def get_authenticated_user(
    request: Request,
    authorization: Optional[str] = Depends(auth_header),
    session: AsyncSession = Depends(get_session),
    sessions: SessionManager = Depends(get_session_manager),
) -> AuthenticatedUser:
    """Main authentication dependency. Any failure is a 401, never a crash."""
    token = extract_session_token(request, authorization)
    if not token:
        raise UnauthorizedError("Authentication required")

    user = await resolve_user(token, sessions, session)
    if user is None:
        raise UnauthorizedError("Invalid or expired session")

    auth = AuthenticatedUser(user=user, session_id=token)
    request.state.auth = auth
    structlog.contextvars.bind_contextvars(user_id=str(auth.user_id))
    return auth
