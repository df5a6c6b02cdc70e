"""
Team service: business logic for team CRUD.

Authorization decisions are delegated to ``app.services.memberships``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from sqlmodel import select

from app.core.database import flush_or_conflict
from app.core.errors import ConflictError
from app.models.membership import TeamMembership
from app.models.task import Task
from app.models.team import Team
from app.models.user import User
from app.services import memberships
from teamtasks_shared.schemas.teams import TeamCreateRequest, TeamUpdateRequest

log = structlog.get_logger()

TEAM_NAME_TAKEN = "Team with this name already exists"


def _team_info(team: Team, my_role: str | None, created_by_username: str | None) -> dict:
    return {
        "id": team.id,
        "name": team.name,
        "description": team.description,
        "created_by_user_id": team.created_by_user_id,
        "created_by_username": created_by_username,
        "my_role": my_role,
        "created_at": team.created_at,
        "updated_at": team.updated_at,
    }


async def _creator_username(session: AsyncSession, team: Team) -> str | None:
    creator = await session.get(User, team.created_by_user_id)
    return creator.username if creator else None


async def _ensure_name_free(
    session: AsyncSession, name: str, exclude_id: uuid.UUID | None = None
) -> None:
    stmt = select(Team.id).where(Team.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Team.id != exclude_id)
    result = await session.execute(stmt)
    if result.first():
        raise ConflictError(TEAM_NAME_TAKEN)


async def list_user_teams(user_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    """List the teams a user belongs to, with their role and the creator's username."""
    creator = aliased(User)
    result = await session.execute(
        select(Team, TeamMembership.role, creator.username)
        .join(TeamMembership, TeamMembership.team_id == Team.id)
        .outerjoin(creator, creator.id == Team.created_by_user_id)
        .where(TeamMembership.user_id == user_id)
        .order_by(Team.name)
    )
    return [_team_info(team, role, username) for team, role, username in result.all()]


async def create_team(
    req: TeamCreateRequest, creator: User, session: AsyncSession
) -> dict:
    """Create a team and make the creator its admin, in one transaction."""
    await _ensure_name_free(session, req.name)

    team = Team(
        name=req.name,
        description=req.description,
        created_by_user_id=creator.id,
    )
    session.add(team)
    await flush_or_conflict(session, TEAM_NAME_TAKEN)

    membership = await memberships.add_founding_admin(session, team, creator.id)

    log.info("team.created", team_id=str(team.id), name=team.name, creator=str(creator.id))
    return _team_info(team, membership.role, creator.username)


async def get_team(team_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession) -> dict:
    """Get a team. 404 if it does not exist, 403 if the caller is not a member."""
    team = await memberships.get_team_or_404(session, team_id)
    membership = await memberships.require_membership(session, user_id, team_id)
    return _team_info(team, membership.role, await _creator_username(session, team))


async def update_team(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    req: TeamUpdateRequest,
    session: AsyncSession,
) -> dict:
    """Update name and/or description. Admins and the creator only."""
    team = await memberships.get_team_or_404(session, team_id, for_update=True)
    await memberships.ensure_can_manage_team(session, team, user_id, "update")

    fields = req.model_dump(exclude_unset=True)
    if fields.get("name") is not None and fields["name"] != team.name:
        await _ensure_name_free(session, fields["name"], exclude_id=team.id)
        team.name = fields["name"]
    if "description" in fields:
        team.description = fields["description"]

    team.updated_at = datetime.now(timezone.utc)
    session.add(team)
    await flush_or_conflict(session, TEAM_NAME_TAKEN)

    log.info("team.updated", team_id=str(team.id), by=str(user_id))
    role = await memberships.role_of(session, user_id, team.id)
    return _team_info(
        team, role.value if role else None, await _creator_username(session, team)
    )


async def delete_team(team_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession) -> None:
    """Delete a team with its memberships and tasks. Admins and the creator only."""
    team = await memberships.get_team_or_404(session, team_id, for_update=True)
    await memberships.ensure_can_manage_team(session, team, user_id, "delete")
    await purge_team(session, team)
    log.info("team.deleted", team_id=str(team_id), by=str(user_id))


async def purge_team(session: AsyncSession, team: Team) -> None:
    """Remove a team and everything that hangs off it."""
    await session.execute(delete(Task).where(Task.team_id == team.id))
    await session.execute(delete(TeamMembership).where(TeamMembership.team_id == team.id))
    await session.delete(team)
    await session.flush()
