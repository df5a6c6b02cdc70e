"""
Membership service: the single authority on who belongs to a team and what
their role lets them do.

Every role comparison in the application happens in this module. Roles are
read fresh from ``team_memberships`` on each call; nothing is cached across
requests. Mutations lock the team row first so concurrent membership changes
on the same team are serialised inside their transactions.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import flush_or_conflict
from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.membership import TeamMembership
from app.models.task import Task
from app.models.team import Team
from app.models.user import User
from teamtasks_shared.schemas.common import TeamRole

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_team_or_404(
    session: AsyncSession, team_id: uuid.UUID, *, for_update: bool = False
) -> Team:
    stmt = select(Team).where(Team.id == team_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    team = result.scalar_one_or_none()
    if not team:
        raise NotFoundError("Team not found")
    return team


async def get_membership(
    session: AsyncSession, user_id: uuid.UUID, team_id: uuid.UUID
) -> Optional[TeamMembership]:
    result = await session.execute(
        select(TeamMembership).where(
            TeamMembership.user_id == user_id, TeamMembership.team_id == team_id
        )
    )
    return result.scalar_one_or_none()


async def role_of(
    session: AsyncSession, user_id: uuid.UUID, team_id: uuid.UUID
) -> Optional[TeamRole]:
    membership = await get_membership(session, user_id, team_id)
    return TeamRole(membership.role) if membership else None


async def is_member(session: AsyncSession, user_id: uuid.UUID, team_id: uuid.UUID) -> bool:
    return await get_membership(session, user_id, team_id) is not None


async def admin_ids(session: AsyncSession, team_id: uuid.UUID) -> list[uuid.UUID]:
    result = await session.execute(
        select(TeamMembership.user_id).where(
            TeamMembership.team_id == team_id,
            TeamMembership.role == TeamRole.ADMIN.value,
        )
    )
    return [row[0] for row in result.all()]


async def find_user(
    session: AsyncSession, *, email: Optional[str] = None, username: Optional[str] = None
) -> User:
    """Find a user by email (preferred) or username; 404 if neither matches."""
    if email:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user:
            return user
    if username:
        result = await session.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()
        if user:
            return user
    raise NotFoundError("User not found")


# ---------------------------------------------------------------------------
# Permission rules
# ---------------------------------------------------------------------------


def can_manage_team(team: Team, role: Optional[TeamRole], user_id: uuid.UUID) -> bool:
    """Admins and the original creator may update or delete a team.

    The creator keeps this right even after being demoted or leaving.
    """
    return role == TeamRole.ADMIN or team.created_by_user_id == user_id


def can_edit_task(task: Task, role: Optional[TeamRole], user_id: uuid.UUID) -> bool:
    """Any current member of the task's team may edit it."""
    if role is None:
        return False
    return task.created_by_user_id == user_id or role in (TeamRole.ADMIN, TeamRole.MEMBER)


def can_delete_task(task: Task, role: Optional[TeamRole], user_id: uuid.UUID) -> bool:
    """Only the task's creator or a team admin may delete it."""
    if role is None:
        return False
    return task.created_by_user_id == user_id or role == TeamRole.ADMIN


async def require_membership(
    session: AsyncSession,
    user_id: uuid.UUID,
    team_id: uuid.UUID,
    message: str = "You are not a member of this team",
) -> TeamMembership:
    membership = await get_membership(session, user_id, team_id)
    if not membership:
        raise ForbiddenError(message)
    return membership


async def require_admin(
    session: AsyncSession,
    user_id: uuid.UUID,
    team_id: uuid.UUID,
    message: str = "Only team admins can do this",
) -> TeamMembership:
    membership = await get_membership(session, user_id, team_id)
    if not membership or membership.role != TeamRole.ADMIN.value:
        raise ForbiddenError(message)
    return membership


async def ensure_can_manage_team(
    session: AsyncSession, team: Team, user_id: uuid.UUID, action: str
) -> None:
    role = await role_of(session, user_id, team.id)
    if not can_manage_team(team, role, user_id):
        raise ForbiddenError(f"Only the team creator or an admin can {action} this team")


async def ensure_can_edit_task(session: AsyncSession, task: Task, user_id: uuid.UUID) -> None:
    role = await role_of(session, user_id, task.team_id)
    if not can_edit_task(task, role, user_id):
        raise ForbiddenError("You do not have permission to update this task")


async def ensure_can_delete_task(session: AsyncSession, task: Task, user_id: uuid.UUID) -> None:
    role = await role_of(session, user_id, task.team_id)
    if not can_delete_task(task, role, user_id):
        raise ForbiddenError("Only the task creator or a team admin can delete this task")


async def ensure_assignable(
    session: AsyncSession, assignee_id: uuid.UUID, team_id: uuid.UUID
) -> None:
    """A task may only be assigned to a current member of its team."""
    if not await is_member(session, assignee_id, team_id):
        raise ValidationError("Assigned user is not a member of this team")


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def add_founding_admin(
    session: AsyncSession, team: Team, user_id: uuid.UUID
) -> TeamMembership:
    """Make a team's creator its first admin. Flushed in the team's transaction."""
    membership = TeamMembership(user_id=user_id, team_id=team.id, role=TeamRole.ADMIN.value)
    session.add(membership)
    await flush_or_conflict(session, "User is already a member of this team")
    return membership


async def add_member(
    session: AsyncSession,
    acting_user_id: uuid.UUID,
    team_id: uuid.UUID,
    *,
    email: Optional[str] = None,
    username: Optional[str] = None,
    role: TeamRole = TeamRole.MEMBER,
) -> dict:
    """Add an existing user, addressed by email or username, to a team.

    Admin only. 404 if no such user, 409 if already a member.
    """
    await get_team_or_404(session, team_id, for_update=True)
    await require_admin(session, acting_user_id, team_id, "Only team admins can add members")
    target = await find_user(session, email=email, username=username)

    if await get_membership(session, target.id, team_id):
        raise ConflictError("User is already a member of this team")

    membership = TeamMembership(user_id=target.id, team_id=team_id, role=role.value)
    session.add(membership)
    # The composite primary key catches a concurrent insert that passed the check above
    await flush_or_conflict(session, "User is already a member of this team")

    log.info(
        "membership.added",
        team_id=str(team_id),
        user_id=str(target.id),
        role=role.value,
        by=str(acting_user_id),
    )
    return _member_info(target, membership)


async def remove_member(
    session: AsyncSession,
    acting_user_id: uuid.UUID,
    team_id: uuid.UUID,
    target_user_id: uuid.UUID,
) -> None:
    """Remove a member from a team.

    Admin only. An admin may not remove themselves when they created the team
    or when they are its only admin. Removing a *different* admin is allowed
    even if that leaves the team without admins.

    Tasks in the team assigned to the removed user become unassigned.
    """
    team = await get_team_or_404(session, team_id, for_update=True)
    await require_admin(session, acting_user_id, team_id, "Only team admins can remove members")

    removing_self = target_user_id == acting_user_id
    if removing_self and team.created_by_user_id == target_user_id:
        raise ForbiddenError("Team creator cannot be removed from their own team")

    if removing_self:
        admins = await admin_ids(session, team_id)
        if admins == [target_user_id]:
            raise ForbiddenError("Cannot remove yourself if you are the last admin of the team")

    membership = await get_membership(session, target_user_id, team_id)
    if not membership:
        raise NotFoundError("Team member not found")

    await session.execute(
        update(Task)
        .where(Task.team_id == team_id, Task.assigned_to_user_id == target_user_id)
        .values(assigned_to_user_id=None)
    )
    await session.delete(membership)
    await session.flush()
    log.info(
        "membership.removed",
        team_id=str(team_id),
        user_id=str(target_user_id),
        by=str(acting_user_id),
    )


async def change_role(
    session: AsyncSession,
    acting_user_id: uuid.UUID,
    team_id: uuid.UUID,
    target_user_id: uuid.UUID,
    role: TeamRole,
) -> dict:
    """Change a member's role. Admin only; the sole admin may not demote themselves."""
    await get_team_or_404(session, team_id, for_update=True)
    await require_admin(session, acting_user_id, team_id, "Only team admins can change roles")

    membership = await get_membership(session, target_user_id, team_id)
    if not membership:
        raise NotFoundError("Team member not found")

    if target_user_id == acting_user_id and role != TeamRole.ADMIN:
        admins = await admin_ids(session, team_id)
        if admins == [target_user_id]:
            raise ForbiddenError("Cannot demote yourself if you are the last admin of the team")

    membership.role = role.value
    session.add(membership)
    await session.flush()
    log.info(
        "membership.role_changed",
        team_id=str(team_id),
        user_id=str(target_user_id),
        role=role.value,
        by=str(acting_user_id),
    )
    user = await session.get(User, target_user_id)
    return _member_info(user, membership)


async def list_members(
    session: AsyncSession, acting_user_id: uuid.UUID, team_id: uuid.UUID
) -> list[dict]:
    """List a team's members. Visible to members only."""
    await get_team_or_404(session, team_id)
    await require_membership(session, acting_user_id, team_id)

    result = await session.execute(
        select(User, TeamMembership)
        .join(TeamMembership, TeamMembership.user_id == User.id)
        .where(TeamMembership.team_id == team_id)
        .order_by(TeamMembership.created_at, User.username)
    )
    return [_member_info(user, membership) for user, membership in result.all()]


def _member_info(user: User, membership: TeamMembership) -> dict:
    return {
        "user_id": user.id,
        "username": user.username,
        "email": user.email,
        "role": membership.role,
    }
