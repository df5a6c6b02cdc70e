"""Team and membership schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, UUID4, model_validator

from .common import TeamRole


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------

class TeamCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class TeamUpdateRequest(BaseModel):
    """Partial update. Only fields present in the body are applied."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None


class TeamResponse(BaseModel):
    id: UUID4
    name: str
    description: Optional[str] = None
    created_by_user_id: UUID4
    created_by_username: Optional[str] = None
    my_role: Optional[TeamRole] = None  # None when a creator is no longer a member
    created_at: datetime
    updated_at: datetime


class TeamListResponse(BaseModel):
    data: List[TeamResponse]


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class MemberAddRequest(BaseModel):
    """Add an existing user to a team, addressed by email or username."""
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(default=None, min_length=1)
    role: TeamRole = TeamRole.MEMBER

    @model_validator(mode="after")
    def _one_identifier(self) -> "MemberAddRequest":
        if not self.email and not self.username:
            raise ValueError("Either email or username is required")
        return self


class MemberRoleUpdateRequest(BaseModel):
    role: TeamRole


class MemberResponse(BaseModel):
    user_id: UUID4
    username: str
    email: str
    role: TeamRole


class MemberListResponse(BaseModel):
    data: List[MemberResponse]
