"""
Pytest configuration and fixtures for Taskboard tests.

Everything runs against MemoryDatastore; Postgres tests skip themselves
when DATABASE_URL is not set.
"""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from taskboard.main import app, install_store
from taskboard.models.task import Task, TaskWrite
from taskboard.models.user import UserWrite
from taskboard.repos.datastore import TASKS, USERS
from taskboard.repos.memory_store import MemoryDatastore
from taskboard.services.locks import EntityLocks
from taskboard.services.mutators import TaskMutator, UserMutator


@pytest.fixture
def store():
    return MemoryDatastore()


@pytest.fixture
def locks():
    return EntityLocks()


@pytest.fixture
def user_mutator(store, locks):
    return UserMutator(store, locks, reconcile_attempts=1)


@pytest.fixture
def task_mutator(store, locks):
    return TaskMutator(store, locks, reconcile_attempts=1)


@pytest.fixture
def make_user(user_mutator):
    """Create a user through the mutator and return the saved model."""
    counter = {"n": 0}

    async def _make(name: str = "Alice", email: str | None = None, pending: list[str] | None = None):
        counter["n"] += 1
        body = UserWrite(name=name, email=email or f"user{counter['n']}@example.com", pending_tasks=pending)
        return (await user_mutator.create(body)).entity

    return _make


@pytest.fixture
def make_task(task_mutator):
    """Create a task through the mutator and return the saved model."""

    async def _make(name: str = "write spec", deadline="2025-01-01", **fields):
        body = TaskWrite(name=name, deadline=deadline, **fields)
        return (await task_mutator.create(body)).entity

    return _make


@pytest.fixture
def check_consistency(store):
    """
    Assert the two-way invariant at quiescence:
    pending, assigned tasks are listed by their assignee and nobody else;
    every listed id is an existing, uncompleted task assigned to the lister.
    """

    async def _check():
        users = {u["_id"]: u for u in await store.find_many(USERS, {})}
        tasks = {t["_id"]: t for t in await store.find_many(TASKS, {})}

        holders: dict[str, list[str]] = {}
        for user in users.values():
            for task_id in user["pendingTasks"]:
                holders.setdefault(task_id, []).append(user["_id"])
                task = tasks.get(task_id)
                assert task is not None, f"{user['_id']} lists missing task {task_id}"
                assert task["assignedUser"] == user["_id"]
                assert not task["completed"]

        for task in tasks.values():
            if Task.from_document(task).is_pending:
                assert holders.get(task["_id"]) == [task["assignedUser"]]
            else:
                assert task["_id"] not in holders
            if task["assignedUser"]:
                assert task["assignedUserName"] == users[task["assignedUser"]]["name"]
            else:
                assert task["assignedUserName"] == "unassigned"

    return _check


@pytest_asyncio.fixture
async def async_client(store):
    """Async HTTP client against the ASGI app, backed by a fresh memory store."""
    install_store(app, store)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
