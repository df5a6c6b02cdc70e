"""User and authentication schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, EmailStr, Field, UUID4, field_validator

# bcrypt only looks at the first 72 bytes of a password
PASSWORD_MAX_BYTES = 72


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode()) > PASSWORD_MAX_BYTES:
            raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
        return value


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserPublic(BaseModel):
    """Public view of a user. Never carries the password hash."""
    id: UUID4
    username: str
    email: str


class AuthResponse(BaseModel):
    user: UserPublic
    message: str
    session_expires_at: datetime


class UserListResponse(BaseModel):
    data: List[UserPublic]
