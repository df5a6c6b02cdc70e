"""
Shared fixtures: an in-memory SQLite database, an in-memory session store and
an HTTP client wired to a fresh application per test.
"""

from __future__ import annotations

import os

# Cheap bcrypt for tests; must be set before app settings are first read
os.environ.setdefault("TT_BCRYPT_ROUNDS", "4")

import time
from datetime import timedelta
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.config import Settings
from app.core.database import create_engine, create_session_factory, init_db
from app.core.sessions import SessionManager
from app.main import create_app


class FakeRedis:
    """In-memory stand-in for the subset of redis.asyncio.Redis the session store uses."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}
        self.deadlines: dict[str, float] = {}
        self.offset = 0.0

    def advance(self, seconds: float) -> None:
        """Move the store's clock forward so TTLs lapse."""
        self.offset += seconds

    def _now(self) -> float:
        return time.monotonic() + self.offset

    def _alive(self, key: str) -> bool:
        deadline = self.deadlines.get(key)
        if deadline is not None and deadline <= self._now():
            self.values.pop(key, None)
            self.sets.pop(key, None)
            self.deadlines.pop(key, None)
            return False
        return key in self.values or key in self.sets

    async def set(self, key: str, value: str, ex: Optional[int] = None):
        self.values[key] = value
        self.deadlines.pop(key, None)
        if ex is not None:
            self.deadlines[key] = self._now() + ex
        return True

    async def get(self, key: str) -> Optional[str]:
        return self.values.get(key) if self._alive(key) else None

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self.values.pop(key, None)
            self.sets.pop(key, None)
            self.deadlines.pop(key, None)
        return removed

    async def sadd(self, key: str, *members: str) -> int:
        self._alive(key)
        members_set = self.sets.setdefault(key, set())
        before = len(members_set)
        members_set.update(members)
        return len(members_set) - before

    async def srem(self, key: str, *members: str) -> int:
        if not self._alive(key):
            return 0
        members_set = self.sets[key]
        before = len(members_set)
        members_set.difference_update(members)
        return before - len(members_set)

    async def smembers(self, key: str) -> set[str]:
        return set(self.sets.get(key, set())) if self._alive(key) else set()

    async def expire(self, key: str, seconds: int) -> bool:
        if not self._alive(key):
            return False
        self.deadlines[key] = self._now() + seconds
        return True

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass


class FakePipeline:
    """Queues commands and applies them to a FakeRedis on execute()."""

    def __init__(self, redis: FakeRedis):
        self.redis = redis
        self.commands: list[tuple[str, tuple, dict]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc) -> None:
        self.commands.clear()

    def _queue(self, name: str, *args, **kwargs) -> "FakePipeline":
        self.commands.append((name, args, kwargs))
        return self

    def set(self, key: str, value: str, ex: Optional[int] = None) -> "FakePipeline":
        return self._queue("set", key, value, ex=ex)

    def sadd(self, key: str, *members: str) -> "FakePipeline":
        return self._queue("sadd", key, *members)

    def expire(self, key: str, seconds: int) -> "FakePipeline":
        return self._queue("expire", key, seconds)

    async def execute(self) -> list:
        commands, self.commands = self.commands, []
        return [await getattr(self.redis, name)(*args, **kwargs) for name, args, kwargs in commands]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    settings = Settings(database_url="sqlite+aiosqlite://")
    engine = create_engine(
        settings,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    """A session for arranging and inspecting state directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def sessions(fake_redis):
    return SessionManager(fake_redis, timedelta(hours=24))


@pytest.fixture
def app(engine, session_factory, fake_redis, sessions):
    """Application with its process-wide resources installed on app.state."""
    application = create_app()
    application.state.engine = engine
    application.state.session_factory = session_factory
    application.state.redis = fake_redis
    application.state.sessions = sessions
    return application


@pytest.fixture
async def client(app):
    # Session cookies are marked Secure, so talk to the app over https
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def register(client: AsyncClient, username: str, password: str = "password123") -> dict:
    """Register a user and return ``{"user": ..., "headers": ...}`` for Bearer auth.

    Cookies are cleared so later requests from the same client act only
    through the returned headers.
    """
    resp = await client.post(
        "/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert resp.status_code == 201, resp.text
    token = resp.cookies["tt_session"]
    client.cookies.clear()
    return {"user": resp.json()["user"], "headers": {"Authorization": f"Bearer {token}"}}


async def create_team(client: AsyncClient, owner: dict, name: str, description: str = "") -> dict:
    resp = await client.post(
        "/api/v1/teams", json={"name": name, "description": description}, headers=owner["headers"]
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def add_member(
    client: AsyncClient, admin: dict, team_id: str, member: dict, role: str = "member"
) -> dict:
    resp = await client.post(
        f"/api/v1/teams/{team_id}/members",
        json={"email": member["user"]["email"], "role": role},
        headers=admin["headers"],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def create_task(client: AsyncClient, actor: dict, team_id: str, title: str, **fields) -> dict:
    resp = await client.post(
        "/api/v1/tasks",
        json={"title": title, "team_id": team_id, **fields},
        headers=actor["headers"],
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
