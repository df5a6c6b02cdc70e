"""
Team membership endpoints.

GET    /api/v1/teams/{teamId}/members              — List members (members only)
POST   /api/v1/teams/{teamId}/members              — Add a user by email or username (admin)
PATCH  /api/v1/teams/{teamId}/members/{memberId}   — Change a member's role (admin)
DELETE /api/v1/teams/{teamId}/members/{memberId}   — Remove a member (admin)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.services import memberships as membership_service
from teamtasks_shared.schemas.common import MessageResponse
from teamtasks_shared.schemas.teams import (
    MemberAddRequest,
    MemberListResponse,
    MemberResponse,
    MemberRoleUpdateRequest,
)

router = APIRouter()


@router.get("", response_model=MemberListResponse)
async def list_members(
    teamId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    items = await membership_service.list_members(session, auth.user_id, teamId)
    return MemberListResponse(data=[MemberResponse(**item) for item in items])


@router.post("", response_model=MemberResponse, status_code=201)
async def add_member(
    teamId: uuid.UUID,
    body: MemberAddRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Add an existing user to the team."""
    item = await membership_service.add_member(
        session,
        auth.user_id,
        teamId,
        email=body.email,
        username=body.username,
        role=body.role,
    )
    await session.commit()
    return MemberResponse(**item)


@router.patch("/{memberId}", response_model=MemberResponse)
async def change_member_role(
    teamId: uuid.UUID,
    memberId: uuid.UUID,
    body: MemberRoleUpdateRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    item = await membership_service.change_role(
        session, auth.user_id, teamId, memberId, body.role
    )
    await session.commit()
    return MemberResponse(**item)


@router.delete("/{memberId}", response_model=MessageResponse)
async def remove_member(
    teamId: uuid.UUID,
    memberId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    await membership_service.remove_member(session, auth.user_id, teamId, memberId)
    await session.commit()
    return MessageResponse(message="Member removed successfully")
