"""
Entity mutators: create / replace / delete for users and tasks.

Each mutation is a fixed sequence of awaited steps:

    validate fields -> validate relationship -> load -> persist -> reconcile

Anything that fails before persist is raised to the caller and nothing is
written. Once the primary document is saved the mutation has succeeded;
reconciliation failures are logged and recorded on the result only.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import uuid4

from taskboard import config
from taskboard.errors import BadInput, NotFound, UniqueConstraintViolation
from taskboard.models.task import UNASSIGNED_NAME, Task, TaskWrite
from taskboard.models.user import User, UserWrite
from taskboard.repos.datastore import TASKS, USERS, Datastore
from taskboard.services.locks import EntityLocks, task_key, user_key
from taskboard.services.reconciler import (
    ReconcileOp,
    ReconcileReport,
    apply_plan,
    plan_task_change,
    plan_task_delete,
    plan_user_change,
    plan_user_delete,
)
from taskboard.services.validation import (
    is_valid_email,
    is_valid_id,
    parse_date,
    resolve_assignee,
    validate_pending_set,
)

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", User, Task)


@dataclass
class MutationResult(Generic[EntityT]):
    """The persisted (or, for delete, removed) document and its reconciliation."""

    entity: EntityT
    planned: list[ReconcileOp] = field(default_factory=list)
    report: ReconcileReport = field(default_factory=ReconcileReport)


def _unique(ids: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(ids))


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "false", "0")
    return bool(value)


class _Mutator:
    def __init__(
        self,
        store: Datastore,
        locks: EntityLocks | None = None,
        reconcile_attempts: int | None = None,
    ):
        self.store = store
        self.locks = locks or EntityLocks(enabled=config.settings.ENTITY_LOCKS)
        self.reconcile_attempts = reconcile_attempts or config.settings.RECONCILE_ATTEMPTS

    async def _reconcile(self, ops: list[ReconcileOp]) -> ReconcileReport:
        report = await apply_plan(self.store, ops, attempts=self.reconcile_attempts)
        if not report.ok:
            logger.warning(
                "%d of %d reconciliation op(s) failed; primary write kept",
                len(report.failures),
                len(ops),
            )
        return report


class UserMutator(_Mutator):
    """Create, replace and delete users, keeping their tasks in step."""

    @staticmethod
    def _check_fields(body: UserWrite) -> None:
        if not body.name or not body.email:
            raise BadInput("User must have name and email")
        if not is_valid_email(body.email):
            raise BadInput("Invalid email format")

    async def _save(self, user: User) -> User:
        try:
            doc = await self.store.save(USERS, user.to_document())
        except UniqueConstraintViolation as e:
            raise UniqueConstraintViolation("A user with that email already exists") from e
        return User.from_document(doc)

    @asynccontextmanager
    async def _hold_user(self, user_id: str, task_ids: Sequence[str]) -> AsyncIterator[User]:
        """
        Lock the user and every task in its current and proposed pendingTasks.

        The current list is only known after a read, so it is read again under
        the lock; if it grew in between, the lock set is recomputed.
        """
        while True:
            doc = await self.store.get(USERS, user_id)
            if doc is None:
                raise NotFound("User not found")
            seen = set(doc.get("pendingTasks") or [])
            keys = [user_key(user_id), *(task_key(t) for t in seen | set(task_ids))]
            async with self.locks.hold(keys):
                current = await self.store.get(USERS, user_id) if self.locks.enabled else doc
                if current is None:
                    raise NotFound("User not found")
                if set(current.get("pendingTasks") or []) <= seen:
                    yield User.from_document(current)
                    return
            logger.debug("pendingTasks of user %s changed while locking; retrying", user_id)

    async def create(self, body: UserWrite) -> MutationResult[User]:
        self._check_fields(body)
        pending = _unique(body.pending_tasks or [])
        user_id = str(uuid4())

        async with self.locks.hold([user_key(user_id), *(task_key(t) for t in pending)]):
            await validate_pending_set(self.store, pending)
            saved = await self._save(User(id=user_id, name=body.name, email=body.email, pending_tasks=pending))
            ops = plan_user_change(saved.id, saved.name, [], saved.pending_tasks)
            report = await self._reconcile(ops)

        logger.info("Created user %s with %d pending task(s)", saved.id, len(saved.pending_tasks))
        return MutationResult(saved, ops, report)

    async def replace(self, user_id: str, body: UserWrite) -> MutationResult[User]:
        self._check_fields(body)
        if not is_valid_id(user_id):
            raise NotFound("User not found")
        pending = _unique(body.pending_tasks or [])

        async with self._hold_user(user_id, pending) as existing:
            await validate_pending_set(self.store, pending)
            old_pending = list(existing.pending_tasks)
            saved = await self._save(
                existing.model_copy(update={"name": body.name, "email": body.email, "pending_tasks": pending})
            )
            ops = plan_user_change(saved.id, saved.name, old_pending, saved.pending_tasks, old_name=existing.name)
            report = await self._reconcile(ops)

        logger.info("Replaced user %s (%d reconcile op(s))", saved.id, len(ops))
        return MutationResult(saved, ops, report)

    async def delete(self, user_id: str) -> MutationResult[User]:
        if not is_valid_id(user_id):
            raise NotFound("User not found")

        async with self._hold_user(user_id, []) as existing:
            if not await self.store.delete(USERS, user_id):
                raise NotFound("User not found")
            ops = plan_user_delete(existing.id)
            report = await self._reconcile(ops)

        logger.info("Deleted user %s", existing.id)
        return MutationResult(existing, ops, report)


class TaskMutator(_Mutator):
    """Create, replace and delete tasks, keeping their assignee in step."""

    @staticmethod
    def _check_fields(body: TaskWrite) -> datetime:
        if not body.name or body.deadline is None or body.deadline == "":
            raise BadInput("Task must have name and deadline")
        deadline = parse_date(body.deadline)
        if deadline is None:
            raise BadInput("Invalid deadline")
        return deadline

    @asynccontextmanager
    async def _hold_assignee(self, task_id: str, body: TaskWrite) -> AsyncIterator[User | None]:
        """
        Resolve the assignee and hold the task and assignee locks.

        A name lookup can only be locked after it resolves, so it is resolved
        again under the lock and retried if the answer changed.
        """
        while True:
            assignee = await resolve_assignee(self.store, body.assigned_user, body.assigned_user_name)
            keys = [task_key(task_id)]
            if assignee is not None:
                keys.append(user_key(assignee.id))
            async with self.locks.hold(keys):
                if self.locks.enabled:
                    current = await resolve_assignee(self.store, body.assigned_user, body.assigned_user_name)
                else:
                    current = assignee
                if (current and current.id) == (assignee and assignee.id):
                    yield current
                    return
            logger.debug("Assignee of task %s changed while locking; retrying", task_id)

    @staticmethod
    def _build(
        task_id: str, body: TaskWrite, deadline: datetime, assignee: User | None, base: Task | None = None
    ) -> Task:
        fields = {
            "name": body.name,
            "description": body.description or "",
            "deadline": deadline,
            "completed": _coerce_bool(body.completed),
            "assigned_user": assignee.id if assignee else "",
            "assigned_user_name": assignee.name if assignee else UNASSIGNED_NAME,
        }
        if base is not None:
            return base.model_copy(update=fields)
        return Task(id=task_id, **fields)

    async def _save(self, task: Task) -> Task:
        return Task.from_document(await self.store.save(TASKS, task.to_document()))

    async def create(self, body: TaskWrite) -> MutationResult[Task]:
        deadline = self._check_fields(body)
        task_id = str(uuid4())

        async with self._hold_assignee(task_id, body) as assignee:
            saved = await self._save(self._build(task_id, body, deadline, assignee))
            ops = plan_task_change(saved.id, "", saved.assigned_user, saved.completed)
            report = await self._reconcile(ops)

        logger.info("Created task %s assigned to %r", saved.id, saved.assigned_user or None)
        return MutationResult(saved, ops, report)

    async def replace(self, task_id: str, body: TaskWrite) -> MutationResult[Task]:
        deadline = self._check_fields(body)
        if not is_valid_id(task_id):
            raise NotFound("Task not found")

        async with self._hold_assignee(task_id, body) as assignee:
            doc = await self.store.get(TASKS, task_id)
            if doc is None:
                raise NotFound("Task not found")
            existing = Task.from_document(doc)
            saved = await self._save(self._build(task_id, body, deadline, assignee, base=existing))
            ops = plan_task_change(saved.id, existing.assigned_user, saved.assigned_user, saved.completed)
            report = await self._reconcile(ops)

        logger.info("Replaced task %s (%d reconcile op(s))", saved.id, len(ops))
        return MutationResult(saved, ops, report)

    async def delete(self, task_id: str) -> MutationResult[Task]:
        if not is_valid_id(task_id):
            raise NotFound("Task not found")

        async with self.locks.hold([task_key(task_id)]):
            doc = await self.store.get(TASKS, task_id)
            if doc is None or not await self.store.delete(TASKS, task_id):
                raise NotFound("Task not found")
            existing = Task.from_document(doc)
            ops = plan_task_delete(existing.id)
            report = await self._reconcile(ops)

        logger.info("Deleted task %s", existing.id)
        return MutationResult(existing, ops, report)
