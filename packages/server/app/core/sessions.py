"""
Server-side login sessions.

A session is an opaque random token mapped in Redis to the id of the user it
was issued for. Sessions live for a fixed TTL counted from creation; activity
does not extend them. The token itself is the only thing a client holds.
"""

from __future__ import annotations

import json
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from fastapi import Request
from redis.asyncio import Redis

log = structlog.get_logger()

SESSION_KEY = "session:{session_id}"
USER_SESSIONS_KEY = "user_sessions:{user_id}"


@dataclass(frozen=True)
class IssuedSession:
    session_id: str
    user_id: uuid.UUID
    expires_at: datetime


class SessionManager:
    """Issues, resolves and destroys opaque session tokens."""

    def __init__(self, redis: Redis, ttl: timedelta):
        self.redis = redis
        self.ttl = ttl

    @property
    def ttl_seconds(self) -> int:
        return int(self.ttl.total_seconds())

    async def create_session(self, user_id: uuid.UUID) -> IssuedSession:
        session_id = secrets.token_urlsafe(32)
        expires_at = datetime.now(timezone.utc) + self.ttl
        payload = json.dumps({"user_id": str(user_id), "expires_at": expires_at.isoformat()})

        index_key = USER_SESSIONS_KEY.format(user_id=user_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.set(SESSION_KEY.format(session_id=session_id), payload, ex=self.ttl_seconds)
            pipe.sadd(index_key, session_id)
            pipe.expire(index_key, self.ttl_seconds)
            await pipe.execute()

        log.info("session.created", user_id=str(user_id), expires_at=expires_at.isoformat())
        return IssuedSession(session_id=session_id, user_id=user_id, expires_at=expires_at)

    async def resolve_session(self, session_id: str | None) -> uuid.UUID | None:
        """Return the user id bound to a live session, or None."""
        if not session_id:
            return None
        raw = await self.redis.get(SESSION_KEY.format(session_id=session_id))
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
            user_id = uuid.UUID(payload["user_id"])
            expires_at = datetime.fromisoformat(payload["expires_at"])
        except (ValueError, KeyError, TypeError):
            log.warning("session.corrupt_payload")
            await self.redis.delete(SESSION_KEY.format(session_id=session_id))
            return None

        # Redis expiry is the primary mechanism; the stored deadline guards stores without TTLs
        if expires_at <= datetime.now(timezone.utc):
            await self.destroy_session(session_id)
            return None
        return user_id

    async def destroy_session(self, session_id: str) -> bool:
        """Delete a session. Returns False if it did not exist."""
        key = SESSION_KEY.format(session_id=session_id)
        raw = await self.redis.get(key)
        deleted = await self.redis.delete(key)
        if raw is not None:
            try:
                user_id = json.loads(raw)["user_id"]
            except (ValueError, KeyError, TypeError):
                user_id = None
            if user_id:
                await self.redis.srem(USER_SESSIONS_KEY.format(user_id=user_id), session_id)
        return deleted > 0

    async def destroy_user_sessions(self, user_id: uuid.UUID) -> int:
        """Delete every session issued to a user. Returns the number removed."""
        index_key = USER_SESSIONS_KEY.format(user_id=user_id)
        session_ids = await self.redis.smembers(index_key)
        removed = 0
        for session_id in session_ids:
            removed += await self.redis.delete(SESSION_KEY.format(session_id=session_id))
        await self.redis.delete(index_key)
        log.info("session.destroyed_all", user_id=str(user_id), count=removed)
        return removed

    async def ping(self) -> bool:
        return bool(await self.redis.ping())


def get_session_manager(request: Request) -> SessionManager:
    """FastAPI dependency returning the process-wide session manager."""
    return request.app.state.sessions
