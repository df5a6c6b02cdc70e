"""
Team API endpoints.

GET       /api/v1/teams             — List teams the caller belongs to
POST      /api/v1/teams             — Create a team (caller becomes admin)
GET       /api/v1/teams/{teamId}    — Get team details (members only)
PUT/PATCH /api/v1/teams/{teamId}    — Update name/description (admin or creator)
DELETE    /api/v1/teams/{teamId}    — Delete team with its tasks and memberships
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.services import teams as team_service
from teamtasks_shared.schemas.common import MessageResponse
from teamtasks_shared.schemas.teams import (
    TeamCreateRequest,
    TeamListResponse,
    TeamResponse,
    TeamUpdateRequest,
)

router = APIRouter()


@router.get("", response_model=TeamListResponse)
async def list_teams(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """List the caller's teams with their role in each."""
    items = await team_service.list_user_teams(auth.user_id, session)
    return TeamListResponse(data=[TeamResponse(**item) for item in items])


@router.post("", response_model=TeamResponse, status_code=201)
async def create_team(
    body: TeamCreateRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    item = await team_service.create_team(body, auth.user, session)
    await session.commit()
    return TeamResponse(**item)


@router.get("/{teamId}", response_model=TeamResponse)
async def get_team(
    teamId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    item = await team_service.get_team(teamId, auth.user_id, session)
    return TeamResponse(**item)


@router.api_route("/{teamId}", methods=["PUT", "PATCH"], response_model=TeamResponse)
async def update_team(
    teamId: uuid.UUID,
    body: TeamUpdateRequest,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Update a team. Only fields present in the body change."""
    item = await team_service.update_team(teamId, auth.user_id, body, session)
    await session.commit()
    return TeamResponse(**item)


@router.delete("/{teamId}", response_model=MessageResponse)
async def delete_team(
    teamId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    await team_service.delete_team(teamId, auth.user_id, session)
    await session.commit()
    return MessageResponse(message="Team deleted successfully")
