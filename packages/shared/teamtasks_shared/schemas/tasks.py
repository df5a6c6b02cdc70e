"""Task schemas shared between the server and clients."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, UUID4

from .common import TaskStatus, TeamRole


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    team_id: UUID4
    description: Optional[str] = None
    assigned_to_user_id: Optional[UUID4] = None
    due_date: Optional[date] = None


class TaskUpdate(BaseModel):
    """Partial update.

    An explicit ``"assigned_to_user_id": null`` unassigns the task; leaving the
    key out keeps the current assignee.
    """
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    assigned_to_user_id: Optional[UUID4] = None
    due_date: Optional[date] = None


class TaskRead(BaseModel):
    id: UUID4
    team_id: UUID4
    title: str
    description: Optional[str] = None
    status: TaskStatus
    assigned_to_user_id: Optional[UUID4] = None
    assigned_to_username: Optional[str] = None
    created_by_user_id: Optional[UUID4] = None
    created_by_username: Optional[str] = None
    my_team_role: Optional[TeamRole] = None
    due_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime
