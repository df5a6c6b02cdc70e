"""Task model."""

from datetime import date
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (
        sa.CheckConstraint(
            "status IN ('pending', 'in-progress', 'completed')", name="ck_tasks_status"
        ),
    )

    team_id: uuid.UUID = Field(foreign_key="teams.id", ondelete="CASCADE", nullable=False, index=True)
    title: str = Field(nullable=False, max_length=255)
    description: Optional[str] = None
    status: str = Field(nullable=False, default="pending")  # pending | in-progress | completed
    assigned_to_user_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="users.id", ondelete="SET NULL", index=True
    )
    due_date: Optional[date] = None
    created_by_user_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="users.id", ondelete="SET NULL"
    )
