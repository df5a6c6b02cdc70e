"""
Integration tests for task endpoints.

Tests cover:
- Task schemas (partial updates, status values)
- Create / list / get / update / delete, scoped to the caller's teams
- Assignment validity
- Creator / admin delete rule vs any-member edit rule
"""

from __future__ import annotations

import uuid

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from app.models.task import Task
from teamtasks_shared.schemas.common import TaskStatus
from teamtasks_shared.schemas.tasks import TaskCreate, TaskUpdate
from conftest import add_member, create_task, create_team, register


# ---------------------------------------------------------------------------
# Unit tests: schemas
# ---------------------------------------------------------------------------


class TestTaskSchemas:
    def test_task_create_defaults(self):
        task = TaskCreate(title="Fix bug", team_id=uuid.uuid4())
        assert task.description is None
        assert task.assigned_to_user_id is None
        assert task.due_date is None

    def test_title_required(self):
        with pytest.raises(ValidationError):
            TaskCreate(title="", team_id=uuid.uuid4())

    def test_update_tracks_explicit_null(self):
        update = TaskUpdate.model_validate({"assigned_to_user_id": None})
        assert update.model_dump(exclude_unset=True) == {"assigned_to_user_id": None}
        assert TaskUpdate().model_dump(exclude_unset=True) == {}

    def test_status_values(self):
        assert [s.value for s in TaskStatus] == ["pending", "in-progress", "completed"]
        with pytest.raises(ValidationError):
            TaskUpdate(status="done")


# ---------------------------------------------------------------------------
# Integration tests
# ---------------------------------------------------------------------------


@pytest.fixture
async def team_setup(client):
    """alice (admin) and bob (member) in Eng; eve outside it."""
    alice = await register(client, "alice")
    bob = await register(client, "bob")
    eve = await register(client, "eve")
    team = await create_team(client, alice, "Eng")
    await add_member(client, alice, team["id"], bob)
    return {"alice": alice, "bob": bob, "eve": eve, "team": team}


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_starts_pending(self, client, team_setup):
        s = team_setup
        task = await create_task(
            client,
            s["bob"],
            s["team"]["id"],
            "Fix bug",
            description="crash on save",
            due_date="2026-11-01",
        )
        assert task["status"] == "pending"
        assert task["created_by_username"] == "bob"
        assert task["assigned_to_user_id"] is None
        assert task["due_date"] == "2026-11-01"
        assert task["my_team_role"] == "member"

    @pytest.mark.asyncio
    async def test_status_in_body_is_ignored(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["alice"], s["team"]["id"], "x", status="completed")
        assert task["status"] == "pending"

    @pytest.mark.asyncio
    async def test_create_with_member_assignee(self, client, team_setup):
        s = team_setup
        task = await create_task(
            client, s["alice"], s["team"]["id"], "x", assigned_to_user_id=s["bob"]["user"]["id"]
        )
        assert task["assigned_to_user_id"] == s["bob"]["user"]["id"]
        assert task["assigned_to_username"] == "bob"

    @pytest.mark.asyncio
    async def test_non_member_assignee_is_validation_error(self, client, team_setup):
        s = team_setup
        resp = await client.post(
            "/api/v1/tasks",
            json={"title": "x", "team_id": s["team"]["id"], "assigned_to_user_id": s["eve"]["user"]["id"]},
            headers=s["alice"]["headers"],
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_non_member_cannot_create(self, client, team_setup):
        s = team_setup
        resp = await client.post(
            "/api/v1/tasks",
            json={"title": "x", "team_id": s["team"]["id"]},
            headers=s["eve"]["headers"],
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_title(self, client, team_setup):
        s = team_setup
        resp = await client.post(
            "/api/v1/tasks", json={"team_id": s["team"]["id"]}, headers=s["alice"]["headers"]
        )
        assert resp.status_code == 422


class TestListAndGet:
    @pytest.mark.asyncio
    async def test_list_scoped_to_my_teams(self, client, team_setup):
        s = team_setup
        other = await create_team(client, s["eve"], "Secret")
        await create_task(client, s["alice"], s["team"]["id"], "eng task")
        await create_task(client, s["eve"], other["id"], "secret task")

        resp = await client.get("/api/v1/tasks", headers=s["bob"]["headers"])
        assert [t["title"] for t in resp.json()] == ["eng task"]

        # A filter naming a foreign team narrows to nothing rather than widening
        resp = await client.get(
            "/api/v1/tasks", params={"team_id": other["id"]}, headers=s["bob"]["headers"]
        )
        assert resp.json() == []

    @pytest.mark.asyncio
    async def test_filters(self, client, team_setup):
        s = team_setup
        mine = await create_task(
            client, s["alice"], s["team"]["id"], "mine", assigned_to_user_id=s["bob"]["user"]["id"]
        )
        done = await create_task(client, s["alice"], s["team"]["id"], "done")
        await client.patch(
            f"/api/v1/tasks/{done['id']}", json={"status": "completed"}, headers=s["alice"]["headers"]
        )

        resp = await client.get(
            "/api/v1/tasks",
            params={"assigned_to_user_id": s["bob"]["user"]["id"]},
            headers=s["alice"]["headers"],
        )
        assert [t["id"] for t in resp.json()] == [mine["id"]]

        resp = await client.get(
            "/api/v1/tasks", params={"status": "completed"}, headers=s["alice"]["headers"]
        )
        assert [t["id"] for t in resp.json()] == [done["id"]]

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, client, team_setup):
        resp = await client.get(
            "/api/v1/tasks", params={"status": "done"}, headers=team_setup["alice"]["headers"]
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_get_hidden_from_non_members(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["alice"], s["team"]["id"], "x")

        resp = await client.get(f"/api/v1/tasks/{task['id']}", headers=s["bob"]["headers"])
        assert resp.status_code == 200

        hidden = await client.get(f"/api/v1/tasks/{task['id']}", headers=s["eve"]["headers"])
        missing = await client.get(f"/api/v1/tasks/{uuid.uuid4()}", headers=s["eve"]["headers"])
        assert hidden.status_code == missing.status_code == 404
        assert hidden.json() == missing.json()


class TestUpdate:
    @pytest.mark.asyncio
    async def test_member_edits_others_task(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["alice"], s["team"]["id"], "x")

        resp = await client.put(
            f"/api/v1/tasks/{task['id']}",
            json={"title": "y", "status": "in-progress"},
            headers=s["bob"]["headers"],
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["title"] == "y"
        assert body["status"] == "in-progress"
        assert body["description"] is None

    @pytest.mark.asyncio
    async def test_any_status_transition_is_accepted(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["alice"], s["team"]["id"], "x")
        url = f"/api/v1/tasks/{task['id']}"
        for status in ("completed", "pending", "in-progress", "pending"):
            resp = await client.patch(url, json={"status": status}, headers=s["alice"]["headers"])
            assert resp.status_code == 200
            assert resp.json()["status"] == status

    @pytest.mark.asyncio
    async def test_reassign_and_unassign(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["alice"], s["team"]["id"], "x")
        url = f"/api/v1/tasks/{task['id']}"

        resp = await client.patch(
            url, json={"assigned_to_user_id": s["bob"]["user"]["id"]}, headers=s["alice"]["headers"]
        )
        assert resp.json()["assigned_to_username"] == "bob"

        resp = await client.patch(url, json={"title": "renamed"}, headers=s["alice"]["headers"])
        assert resp.json()["assigned_to_user_id"] == s["bob"]["user"]["id"]

        resp = await client.patch(url, json={"assigned_to_user_id": None}, headers=s["alice"]["headers"])
        assert resp.json()["assigned_to_user_id"] is None

    @pytest.mark.asyncio
    async def test_reassign_to_non_member_rejected(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["alice"], s["team"]["id"], "x")
        resp = await client.patch(
            f"/api/v1/tasks/{task['id']}",
            json={"assigned_to_user_id": s["eve"]["user"]["id"]},
            headers=s["alice"]["headers"],
        )
        assert resp.status_code == 422

        resp = await client.get(f"/api/v1/tasks/{task['id']}", headers=s["alice"]["headers"])
        assert resp.json()["assigned_to_user_id"] is None

    @pytest.mark.asyncio
    async def test_null_title_rejected(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["alice"], s["team"]["id"], "x")
        resp = await client.patch(
            f"/api/v1/tasks/{task['id']}", json={"title": None}, headers=s["alice"]["headers"]
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_outsider_gets_404(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["alice"], s["team"]["id"], "x")
        resp = await client.patch(
            f"/api/v1/tasks/{task['id']}", json={"title": "pwned"}, headers=s["eve"]["headers"]
        )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_removed_member_loses_access(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["bob"], s["team"]["id"], "bob's")
        await client.delete(
            f"/api/v1/teams/{s['team']['id']}/members/{s['bob']['user']['id']}",
            headers=s["alice"]["headers"],
        )
        resp = await client.patch(
            f"/api/v1/tasks/{task['id']}", json={"title": "still mine?"}, headers=s["bob"]["headers"]
        )
        assert resp.status_code == 404


class TestDelete:
    @pytest.mark.asyncio
    async def test_member_cannot_delete_others_task(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["alice"], s["team"]["id"], "x")
        resp = await client.delete(f"/api/v1/tasks/{task['id']}", headers=s["bob"]["headers"])
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_creator_deletes_own_task(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["bob"], s["team"]["id"], "x")
        resp = await client.delete(f"/api/v1/tasks/{task['id']}", headers=s["bob"]["headers"])
        assert resp.status_code == 200

        resp = await client.get(f"/api/v1/tasks/{task['id']}", headers=s["bob"]["headers"])
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_admin_deletes_any_task(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["bob"], s["team"]["id"], "x")
        resp = await client.delete(f"/api/v1/tasks/{task['id']}", headers=s["alice"]["headers"])
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_outsider_gets_404(self, client, team_setup):
        s = team_setup
        task = await create_task(client, s["alice"], s["team"]["id"], "x")
        resp = await client.delete(f"/api/v1/tasks/{task['id']}", headers=s["eve"]["headers"])
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Storage constraints
# ---------------------------------------------------------------------------

class TestStorage:
    @pytest.mark.asyncio
    async def test_store_rejects_unknown_status(self, client, db):
        alice = await register(client, "alice")
        team = await create_team(client, alice, "Eng")

        db.add(
            Task(
                team_id=uuid.UUID(team["id"]),
                title="Ship it",
                status="done",
                created_by_user_id=uuid.UUID(alice["user"]["id"]),
            )
        )
        with pytest.raises(IntegrityError):
            await db.flush()
        await db.rollback()
