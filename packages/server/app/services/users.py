"""
User service: registration, credential checks, the user directory and
account deletion.
"""

from __future__ import annotations

import structlog
from sqlalchemy import delete, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import burn_password_check, hash_password, verify_password
from app.core.config import get_settings
from app.core.database import flush_or_conflict
from app.core.errors import ConflictError, InvalidCredentialsError, ValidationError
from app.models.membership import TeamMembership
from app.models.task import Task
from app.models.team import Team
from app.models.user import User
from app.services.teams import purge_team
from teamtasks_shared.schemas.users import RegisterRequest

log = structlog.get_logger()
settings = get_settings()

USER_TAKEN = "Username or email already exists"


async def register_user(session: AsyncSession, req: RegisterRequest) -> User:
    """Create a user with a freshly hashed password. 409 if username or email is taken."""
    if len(req.password) < settings.password_min_length:
        raise ValidationError(
            f"Password must be at least {settings.password_min_length} characters"
        )

    result = await session.execute(
        select(User.id).where(or_(User.username == req.username, User.email == req.email))
    )
    if result.first():
        raise ConflictError(USER_TAKEN)

    user = User(
        username=req.username,
        email=req.email,
        password_hash=hash_password(req.password),
    )
    session.add(user)
    await flush_or_conflict(session, USER_TAKEN)

    log.info("user.registered", user_id=str(user.id), username=user.username)
    return user


async def authenticate(session: AsyncSession, username: str, password: str) -> User:
    """Check a username/password pair.

    Unknown usernames and wrong passwords fail identically and take roughly
    the same time.
    """
    result = await session.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()

    if user is None:
        burn_password_check(password)
        log.warning("auth.login_failure", username=username, reason="unknown_user")
        raise InvalidCredentialsError()

    if not verify_password(password, user.password_hash):
        log.warning("auth.login_failure", username=username, reason="bad_password")
        raise InvalidCredentialsError()

    log.info("auth.login_success", user_id=str(user.id))
    return user


async def list_users(session: AsyncSession) -> list[User]:
    result = await session.execute(select(User).order_by(User.username))
    return list(result.scalars().all())


async def delete_account(session: AsyncSession, user: User) -> None:
    """Delete a user and everything they own.

    Teams the user created go with them (with those teams' tasks and
    memberships). Tasks elsewhere that the user created or was assigned keep
    existing with those references cleared. The caller is responsible for
    destroying the user's sessions once this commits.
    """
    user_id = user.id

    await session.execute(
        update(Task).where(Task.assigned_to_user_id == user_id).values(assigned_to_user_id=None)
    )
    await session.execute(
        update(Task).where(Task.created_by_user_id == user_id).values(created_by_user_id=None)
    )

    result = await session.execute(select(Team).where(Team.created_by_user_id == user_id))
    owned = list(result.scalars().all())
    for team in owned:
        await purge_team(session, team)

    await session.execute(delete(TeamMembership).where(TeamMembership.user_id == user_id))
    await session.delete(user)
    await session.flush()

    log.info("user.deleted", user_id=str(user_id), teams_removed=len(owned))

