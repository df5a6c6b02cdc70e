"""
User directory endpoints.

GET    /api/v1/users      — List all users (id, username, email)
DELETE /api/v1/users/me   — Delete the caller's account
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.config import get_settings
from app.core.database import get_session
from app.core.sessions import SessionManager, get_session_manager
from app.services import users as user_service
from teamtasks_shared.schemas.common import MessageResponse
from teamtasks_shared.schemas.users import UserListResponse, UserPublic

settings = get_settings()
router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """List every registered user, for picking people to add to a team."""
    users = await user_service.list_users(session)
    return UserListResponse(
        data=[UserPublic(id=u.id, username=u.username, email=u.email) for u in users]
    )


@router.delete("/me", response_model=MessageResponse)
async def delete_me(
    response: Response,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Delete the caller's account, the teams they created, and all their sessions."""
    await user_service.delete_account(session, auth.user)
    await session.commit()
    await sessions.destroy_user_sessions(auth.user_id)

    response.delete_cookie(settings.session_cookie_name, path="/")
    response.delete_cookie(settings.csrf_cookie_name, path="/")
    return MessageResponse(message="Account deleted")
