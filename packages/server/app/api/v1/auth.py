"""
Authentication endpoints.

- Username/password registration (logs the new user in)
- Login and logout
- Current identity
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, generate_csrf_token, get_authenticated_user
from app.core.config import get_settings
from app.core.database import get_session
from app.core.sessions import IssuedSession, SessionManager, get_session_manager
from app.models.user import User
from app.services import users as user_service
from teamtasks_shared.schemas.common import MessageResponse
from teamtasks_shared.schemas.users import AuthResponse, LoginRequest, RegisterRequest, UserPublic

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()


def _set_session_cookies(response: Response, issued: IssuedSession, ttl_seconds: int) -> None:
    """Set the session and CSRF cookies on a response."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=issued.session_id,
        httponly=True,
        secure=not settings.debug,  # allow non-HTTPS in dev
        samesite="lax",
        path="/",
        max_age=ttl_seconds,
    )
    response.set_cookie(
        key=settings.csrf_cookie_name,
        value=generate_csrf_token(),
        httponly=False,  # JS must read this
        secure=not settings.debug,
        samesite="lax",
        path="/",
        max_age=ttl_seconds,
    )


def _clear_session_cookies(response: Response) -> None:
    response.delete_cookie(settings.session_cookie_name, path="/")
    response.delete_cookie(settings.csrf_cookie_name, path="/")


def _auth_response(user: User, issued: IssuedSession, message: str) -> AuthResponse:
    return AuthResponse(
        user=UserPublic(id=user.id, username=user.username, email=user.email),
        message=message,
        session_expires_at=issued.expires_at,
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Register a new user and start a session for them."""
    user = await user_service.register_user(session, body)
    issued = await sessions.create_session(user.id)
    try:
        await session.commit()
    except Exception:
        # Don't leave a session pointing at a user that was never stored
        await sessions.destroy_session(issued.session_id)
        raise

    _set_session_cookies(response, issued, sessions.ttl_seconds)
    return _auth_response(user, issued, "Registration successful")


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Authenticate with username/password and receive a session."""
    user = await user_service.authenticate(session, body.username, body.password)
    issued = await sessions.create_session(user.id)

    _set_session_cookies(response, issued, sessions.ttl_seconds)
    return _auth_response(user, issued, "Login successful")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Invalidate the current session."""
    await sessions.destroy_session(auth.session_id)
    _clear_session_cookies(response)
    log.info("auth.logout", user_id=str(auth.user_id))
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=UserPublic)
async def me(auth: AuthenticatedUser = Depends(get_authenticated_user)):
    """Return the authenticated user."""
    user = auth.user
    return UserPublic(id=user.id, username=user.username, email=user.email)
