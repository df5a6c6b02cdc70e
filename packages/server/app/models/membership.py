"""User-Team membership (join table). One row per (user, team)."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import _utcnow


class TeamMembership(SQLModel, table=True):
    __tablename__ = "team_memberships"
    __table_args__ = (
        sa.CheckConstraint("role IN ('admin', 'member')", name="ck_team_memberships_role"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", primary_key=True)
    team_id: uuid.UUID = Field(
        foreign_key="teams.id", ondelete="CASCADE", primary_key=True, index=True
    )
    role: str = Field(nullable=False, default="member")  # admin | member
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
