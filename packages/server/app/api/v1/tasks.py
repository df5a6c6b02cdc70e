"""
Task endpoints.

Every task belongs to one team and is only visible to that team's members.
Tasks in other teams are reported as not found.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.database import get_session
from app.services import tasks as task_service
from teamtasks_shared.schemas.common import MessageResponse, TaskStatus
from teamtasks_shared.schemas.tasks import TaskCreate, TaskRead, TaskUpdate

router = APIRouter()


@router.get("", response_model=List[TaskRead])
async def list_tasks_endpoint(
    team_id: Optional[uuid.UUID] = None,
    assigned_to_user_id: Optional[uuid.UUID] = None,
    status: Optional[TaskStatus] = None,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """List tasks across the caller's teams, optionally filtered."""
    return await task_service.list_tasks(
        session,
        auth.user_id,
        team_id=team_id,
        assigned_to_user_id=assigned_to_user_id,
        status=status,
    )


@router.post("", response_model=TaskRead, status_code=201)
async def create_task_endpoint(
    body: TaskCreate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    task = await task_service.create_task(session, body, auth.user_id)
    await session.commit()
    return await task_service.read_task(session, task.id, auth.user_id)


@router.get("/{taskId}", response_model=TaskRead)
async def get_task_endpoint(
    taskId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    return await task_service.read_task(session, taskId, auth.user_id)


@router.api_route("/{taskId}", methods=["PUT", "PATCH"], response_model=TaskRead)
async def update_task_endpoint(
    taskId: uuid.UUID,
    body: TaskUpdate,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    """Update a task. Only fields present in the body change."""
    task = await task_service.update_task(session, taskId, body, auth.user_id)
    await session.commit()
    return await task_service.read_task(session, task.id, auth.user_id)


@router.delete("/{taskId}", response_model=MessageResponse)
async def delete_task_endpoint(
    taskId: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_authenticated_user),
    session: AsyncSession = Depends(get_session),
):
    await task_service.delete_task(session, taskId, auth.user_id)
    await session.commit()
    return MessageResponse(message="Task deleted successfully")
