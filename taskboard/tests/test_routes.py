"""Integration tests for the /api/users and /api/tasks routes."""

from __future__ import annotations

import json
from uuid import uuid4

import pytest


async def _create_user(client, name="Alice", email=None, pending=None):
    body = {"name": name, "email": email or f"{uuid4().hex[:8]}@example.com"}
    if pending is not None:
        body["pendingTasks"] = pending
    res = await client.post("/api/users", json=body)
    assert res.status_code == 201, res.text
    return res.json()["data"]


async def _create_task(client, name="write spec", **fields):
    res = await client.post("/api/tasks", json={"name": name, "deadline": "2025-01-01", **fields})
    assert res.status_code == 201, res.text
    return res.json()["data"]


# ── users ───────────────────────────────────────────────────────────────────


class TestUserRoutes:
    """Tests for /api/users endpoints."""

    async def test_create_user(self, async_client):
        """POST /api/users → 201 with the created user."""
        res = await async_client.post("/api/users", json={"name": "Alice", "email": "alice@x.com"})
        assert res.status_code == 201
        body = res.json()
        assert body["message"] == "Created"
        assert body["data"]["name"] == "Alice"
        assert body["data"]["pendingTasks"] == []
        assert body["data"]["_id"]
        assert body["data"]["dateCreated"]

    async def test_create_user_missing_email(self, async_client):
        """POST /api/users without email → 400 envelope."""
        res = await async_client.post("/api/users", json={"name": "Alice"})
        assert res.status_code == 400
        assert res.json() == {"message": "Bad Request", "data": "User must have name and email"}

    async def test_create_user_email_with_trailing_newline(self, async_client):
        res = await async_client.post("/api/users", json={"name": "Alice", "email": "alice@x.com\n"})
        assert res.status_code == 400
        assert res.json() == {"message": "Bad Request", "data": "Invalid email format"}
        assert (await async_client.get("/api/users")).json()["data"] == []

    async def test_create_user_duplicate_email(self, async_client):
        await _create_user(async_client, email="dup@x.com")
        res = await async_client.post("/api/users", json={"name": "Other", "email": "dup@x.com"})
        assert res.status_code == 400
        assert "already exists" in res.json()["data"]

    async def test_create_user_no_body(self, async_client):
        res = await async_client.post("/api/users")
        assert res.status_code == 400
        assert res.json()["message"] == "Bad Request"

    async def test_get_user(self, async_client):
        user = await _create_user(async_client, "Bob")
        res = await async_client.get(f"/api/users/{user['_id']}")
        assert res.status_code == 200
        assert res.json()["data"]["name"] == "Bob"

    async def test_get_user_with_select(self, async_client):
        user = await _create_user(async_client, "Bob")
        res = await async_client.get(f"/api/users/{user['_id']}", params={"select": json.dumps({"name": 1})})
        assert res.status_code == 200
        assert res.json()["data"] == {"_id": user["_id"], "name": "Bob"}

    @pytest.mark.parametrize("user_id", ["not-an-id", str(uuid4())])
    async def test_get_user_not_found(self, async_client, user_id):
        """GET /api/users/{bad or unknown} → 404."""
        res = await async_client.get(f"/api/users/{user_id}")
        assert res.status_code == 404
        assert res.json()["message"] == "Not Found"

    async def test_replace_user(self, async_client):
        user = await _create_user(async_client, "Alice")
        task = await _create_task(async_client)
        res = await async_client.put(
            f"/api/users/{user['_id']}",
            json={"name": "Alicia", "email": user["email"], "pendingTasks": [task["_id"]]},
        )
        assert res.status_code == 200
        assert res.json()["data"]["pendingTasks"] == [task["_id"]]

        res = await async_client.get(f"/api/tasks/{task['_id']}")
        assert res.json()["data"]["assignedUser"] == user["_id"]
        assert res.json()["data"]["assignedUserName"] == "Alicia"

    async def test_replace_user_with_completed_task(self, async_client):
        user = await _create_user(async_client, "Alice")
        done = await _create_task(async_client, completed=True)
        res = await async_client.put(
            f"/api/users/{user['_id']}",
            json={"name": "Alice", "email": user["email"], "pendingTasks": [done["_id"]]},
        )
        assert res.status_code == 400
        assert done["_id"] in res.json()["data"]

    async def test_replace_unknown_user(self, async_client):
        res = await async_client.put(f"/api/users/{uuid4()}", json={"name": "A", "email": "a@x.com"})
        assert res.status_code == 404

    async def test_delete_user(self, async_client):
        """DELETE /api/users/{id} → 204, tasks unassigned."""
        user = await _create_user(async_client, "Alice")
        task = await _create_task(async_client, assignedUser=user["_id"])

        res = await async_client.delete(f"/api/users/{user['_id']}")
        assert res.status_code == 204
        assert res.content == b""

        assert (await async_client.get(f"/api/users/{user['_id']}")).status_code == 404
        data = (await async_client.get(f"/api/tasks/{task['_id']}")).json()["data"]
        assert data["assignedUser"] == ""
        assert data["assignedUserName"] == "unassigned"

    async def test_delete_user_not_found(self, async_client):
        res = await async_client.delete(f"/api/users/{uuid4()}")
        assert res.status_code == 404


class TestUserListing:
    """Tests for GET /api/users query parameters."""

    async def test_list_all(self, async_client):
        for name in ("Cy", "Ann", "Ben"):
            await _create_user(async_client, name)
        res = await async_client.get("/api/users")
        assert res.status_code == 200
        assert res.json()["message"] == "OK"
        assert len(res.json()["data"]) == 3

    async def test_where_sort_select(self, async_client):
        for name in ("Cy", "Ann", "Ben"):
            await _create_user(async_client, name)
        res = await async_client.get(
            "/api/users",
            params={
                "where": json.dumps({"name": {"$ne": "Ben"}}),
                "sort": json.dumps({"name": 1}),
                "select": json.dumps({"name": 1, "_id": 0}),
            },
        )
        assert res.json()["data"] == [{"name": "Ann"}, {"name": "Cy"}]

    async def test_sort_accepts_named_directions(self, async_client):
        for name in ("Cy", "Ann", "Ben"):
            await _create_user(async_client, name)
        res = await async_client.get("/api/users", params={"sort": json.dumps({"name": "desc"})})
        assert res.status_code == 200
        assert [u["name"] for u in res.json()["data"]] == ["Cy", "Ben", "Ann"]

    async def test_count(self, async_client):
        for name in ("Cy", "Ann"):
            await _create_user(async_client, name)
        res = await async_client.get("/api/users", params={"count": "true"})
        assert res.json()["data"] == 2

    async def test_skip_and_limit(self, async_client):
        for name in ("a", "b", "c", "d"):
            await _create_user(async_client, name)
        res = await async_client.get(
            "/api/users", params={"sort": json.dumps({"name": -1}), "skip": "1", "limit": "2"}
        )
        assert [u["name"] for u in res.json()["data"]] == ["c", "b"]

    @pytest.mark.parametrize(
        "params",
        [
            {"where": "{oops"},
            {"sort": json.dumps({"name": 0})},
            {"select": json.dumps({"name": 1, "email": 0})},
            {"limit": "ten"},
        ],
    )
    async def test_malformed_params(self, async_client, params):
        res = await async_client.get("/api/users", params=params)
        assert res.status_code == 400
        assert res.json()["message"] == "Bad Request"


# ── tasks ───────────────────────────────────────────────────────────────────


class TestTaskRoutes:
    """Tests for /api/tasks endpoints."""

    async def test_create_assigned_task(self, async_client):
        """Create an assigned task, then complete it."""
        user = await _create_user(async_client, "Alice", "alice@x.com")
        res = await async_client.post(
            "/api/tasks",
            json={"name": "write spec", "deadline": "2025-01-01", "assignedUser": user["_id"]},
        )
        assert res.status_code == 201
        task = res.json()["data"]
        assert task["assignedUserName"] == "Alice"
        assert task["completed"] is False
        assert task["description"] == ""

        pending = (await async_client.get(f"/api/users/{user['_id']}")).json()["data"]["pendingTasks"]
        assert pending == [task["_id"]]

        res = await async_client.put(
            f"/api/tasks/{task['_id']}",
            json={"name": "write spec", "deadline": "2025-01-01", "assignedUser": user["_id"], "completed": True},
        )
        assert res.status_code == 200
        assert res.json()["data"]["completed"] is True

        pending = (await async_client.get(f"/api/users/{user['_id']}")).json()["data"]["pendingTasks"]
        assert pending == []

    async def test_create_task_unknown_assignee_name(self, async_client):
        res = await async_client.post(
            "/api/tasks", json={"name": "t", "deadline": "2025-01-01", "assignedUserName": "Bob"}
        )
        assert res.status_code == 400
        listed = (await async_client.get("/api/tasks")).json()["data"]
        assert listed == []

    async def test_create_task_ambiguous_name(self, async_client):
        await _create_user(async_client, "Carol")
        await _create_user(async_client, "Carol")
        res = await async_client.post(
            "/api/tasks", json={"name": "t", "deadline": "2025-01-01", "assignedUserName": "Carol"}
        )
        assert res.status_code == 400

    async def test_create_task_malformed_assignee_id(self, async_client):
        res = await async_client.post("/api/tasks", json={"name": "t", "deadline": "2025-01-01", "assignedUser": "x"})
        assert res.status_code == 400
        assert res.json()["data"] == "Invalid assignedUser ID format"

    async def test_create_task_epoch_deadline(self, async_client):
        task = await _create_task(async_client, deadline=1735689600000)
        assert task["deadline"].startswith("2025-01-01T00:00:00")

    async def test_create_task_bad_deadline(self, async_client):
        res = await async_client.post("/api/tasks", json={"name": "t", "deadline": "whenever"})
        assert res.status_code == 400

    @pytest.mark.parametrize("deadline", ["9999-12-31T23:00:00-05:00", "0001-01-01T00:00:00+01:00"])
    async def test_create_task_deadline_outside_utc_range(self, async_client, deadline):
        res = await async_client.post("/api/tasks", json={"name": "t", "deadline": deadline})
        assert res.status_code == 400
        assert res.json() == {"message": "Bad Request", "data": "Invalid deadline"}

    @pytest.mark.parametrize("task_id", ["nope", str(uuid4())])
    async def test_get_task_not_found(self, async_client, task_id):
        res = await async_client.get(f"/api/tasks/{task_id}")
        assert res.status_code == 404

    async def test_delete_task(self, async_client):
        user = await _create_user(async_client, "Alice")
        task = await _create_task(async_client, assignedUser=user["_id"])

        res = await async_client.delete(f"/api/tasks/{task['_id']}")
        assert res.status_code == 204

        pending = (await async_client.get(f"/api/users/{user['_id']}")).json()["data"]["pendingTasks"]
        assert pending == []
        assert (await async_client.delete(f"/api/tasks/{task['_id']}")).status_code == 404

    async def test_default_limit_is_100(self, async_client, store):
        for i in range(105):
            await store.save(
                "tasks",
                {
                    "_id": str(uuid4()),
                    "name": f"t{i}",
                    "description": "",
                    "deadline": "2025-01-01T00:00:00Z",
                    "completed": False,
                    "assignedUser": "",
                    "assignedUserName": "unassigned",
                },
            )
        assert len((await async_client.get("/api/tasks")).json()["data"]) == 100
        assert len((await async_client.get("/api/tasks", params={"limit": "0"})).json()["data"]) == 105
        assert (await async_client.get("/api/tasks", params={"count": "true"})).json()["data"] == 100

    async def test_filter_pending(self, async_client):
        await _create_task(async_client, "open")
        await _create_task(async_client, "done", completed=True)
        res = await async_client.get("/api/tasks", params={"where": json.dumps({"completed": False})})
        assert [t["name"] for t in res.json()["data"]] == ["open"]


async def test_health(async_client):
    res = await async_client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}
