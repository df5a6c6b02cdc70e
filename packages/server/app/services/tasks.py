"""
Task service layer: business logic for tasks scoped to teams.

Handles:
- Task CRUD, restricted to teams the caller belongs to
- Assignment validation (assignees must be current members of the task's team)
- Enrichment of task rows with assignee/creator usernames for API responses

Status changes are not gated: any of pending / in-progress / completed may be
set from any other.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from sqlmodel import select

from app.core.errors import NotFoundError, ValidationError
from app.models.membership import TeamMembership
from app.models.task import Task
from app.models.user import User
from app.services import memberships
from teamtasks_shared.schemas.common import TaskStatus
from teamtasks_shared.schemas.tasks import TaskCreate, TaskRead, TaskUpdate

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _visible_tasks(user_id: uuid.UUID):
    """Tasks joined to the caller's memberships and to assignee/creator usernames.

    The inner join on the caller's membership is what scopes every query here
    to teams the caller belongs to.
    """
    assignee = aliased(User)
    creator = aliased(User)
    return (
        select(Task, TeamMembership.role, assignee.username, creator.username)
        .join(
            TeamMembership,
            and_(TeamMembership.team_id == Task.team_id, TeamMembership.user_id == user_id),
        )
        .outerjoin(assignee, assignee.id == Task.assigned_to_user_id)
        .outerjoin(creator, creator.id == Task.created_by_user_id)
    )


def _to_read(
    task: Task,
    my_team_role: Optional[str],
    assigned_to_username: Optional[str],
    created_by_username: Optional[str],
) -> TaskRead:
    return TaskRead(
        id=task.id,
        team_id=task.team_id,
        title=task.title,
        description=task.description,
        status=task.status,
        assigned_to_user_id=task.assigned_to_user_id,
        assigned_to_username=assigned_to_username,
        created_by_user_id=task.created_by_user_id,
        created_by_username=created_by_username,
        my_team_role=my_team_role,
        due_date=task.due_date,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


async def get_visible_task_or_404(
    session: AsyncSession, task_id: uuid.UUID, user_id: uuid.UUID
) -> Task:
    """Fetch a task the caller can see.

    A task in a team the caller does not belong to is reported as missing, so
    its existence is not revealed.
    """
    result = await session.execute(
        select(Task)
        .join(
            TeamMembership,
            and_(TeamMembership.team_id == Task.team_id, TeamMembership.user_id == user_id),
        )
        .where(Task.id == task_id)
    )
    task = result.scalar_one_or_none()
    if not task:
        raise NotFoundError("Task not found")
    return task


async def read_task(session: AsyncSession, task_id: uuid.UUID, user_id: uuid.UUID) -> TaskRead:
    result = await session.execute(_visible_tasks(user_id).where(Task.id == task_id))
    row = result.one_or_none()
    if not row:
        raise NotFoundError("Task not found")
    return _to_read(*row)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def list_tasks(
    session: AsyncSession,
    user_id: uuid.UUID,
    *,
    team_id: Optional[uuid.UUID] = None,
    assigned_to_user_id: Optional[uuid.UUID] = None,
    status: Optional[TaskStatus] = None,
) -> list[TaskRead]:
    """List tasks in the caller's teams. Filters only narrow that set."""
    stmt = _visible_tasks(user_id)
    if team_id:
        stmt = stmt.where(Task.team_id == team_id)
    if assigned_to_user_id:
        stmt = stmt.where(Task.assigned_to_user_id == assigned_to_user_id)
    if status:
        stmt = stmt.where(Task.status == status.value)

    stmt = stmt.order_by(Task.created_at, Task.title)
    result = await session.execute(stmt)
    return [_to_read(*row) for row in result.all()]


async def create_task(
    session: AsyncSession,
    task_in: TaskCreate,
    user_id: uuid.UUID,
) -> Task:
    """Create a task in a team the caller belongs to. Status always starts as pending."""
    await memberships.require_membership(session, user_id, task_in.team_id)

    if task_in.assigned_to_user_id:
        # Lock the team so the assignee cannot be removed before this insert commits
        await memberships.get_team_or_404(session, task_in.team_id, for_update=True)
        await memberships.ensure_assignable(session, task_in.assigned_to_user_id, task_in.team_id)

    task = Task(
        team_id=task_in.team_id,
        title=task_in.title,
        description=task_in.description,
        status=TaskStatus.PENDING.value,
        assigned_to_user_id=task_in.assigned_to_user_id,
        due_date=task_in.due_date,
        created_by_user_id=user_id,
    )
    session.add(task)
    await session.flush()

    log.info("task.created", task_id=str(task.id), team_id=str(task.team_id), by=str(user_id))
    return task


async def update_task(
    session: AsyncSession,
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    user_id: uuid.UUID,
) -> Task:
    task = await get_visible_task_or_404(session, task_id, user_id)
    await memberships.ensure_can_edit_task(session, task, user_id)

    data = task_in.model_dump(exclude_unset=True)

    for field in ("title", "status"):
        if field in data and data[field] is None:
            raise ValidationError(f"{field} cannot be null")

    if "assigned_to_user_id" in data and data["assigned_to_user_id"] is not None:
        await memberships.get_team_or_404(session, task.team_id, for_update=True)
        await memberships.ensure_assignable(session, data["assigned_to_user_id"], task.team_id)

    if "status" in data:
        data["status"] = TaskStatus(data["status"]).value

    for key, value in data.items():
        setattr(task, key, value)

    task.updated_at = datetime.now(timezone.utc)
    session.add(task)
    await session.flush()

    log.info("task.updated", task_id=str(task.id), fields=sorted(data), by=str(user_id))
    return task


async def delete_task(session: AsyncSession, task_id: uuid.UUID, user_id: uuid.UUID) -> None:
    task = await get_visible_task_or_404(session, task_id, user_id)
    await memberships.ensure_can_delete_task(session, task, user_id)

    await session.delete(task)
    await session.flush()
    log.info("task.deleted", task_id=str(task_id), team_id=str(task.team_id), by=str(user_id))
