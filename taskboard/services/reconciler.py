"""
Reference reconciler.

Keeps User.pendingTasks and Task.assignedUser / assignedUserName pointing at
each other. Planning is pure: given the old and new relationship state of one
entity it returns the ordered cross-entity updates for the other side.
Applying runs them one at a time, in order, against Datastore.update_many.

Every operation is idempotent ($set / $pull / $addToSet), so a failed one can
be retried, and a failure never undoes the primary write that preceded it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from taskboard.errors import ReconciliationFailure
from taskboard.models.task import UNASSIGNED_NAME
from taskboard.repos.datastore import TASKS, USERS, Datastore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileOp:
    """One batch update against one collection."""

    kind: str
    filter: dict[str, Any]
    patch: dict[str, Any]
    description: str


@dataclass
class ReconcileReport:
    """What happened when a plan was applied."""

    applied: list[ReconcileOp] = field(default_factory=list)
    failures: list[ReconciliationFailure] = field(default_factory=list)
    modified: int = 0

    @property
    def ok(self) -> bool:
        return not self.failures


def _assign(user_id: str, user_name: str) -> dict[str, Any]:
    # assignedUser and assignedUserName always travel together.
    return {"$set": {"assignedUser": user_id, "assignedUserName": user_name}}


UNASSIGN: dict[str, Any] = {"$set": {"assignedUser": "", "assignedUserName": UNASSIGNED_NAME}}


def _difference(a: Sequence[str], b: Sequence[str]) -> list[str]:
    exclude = set(b)
    seen: set[str] = set()
    out = []
    for item in a:
        if item not in exclude and item not in seen:
            seen.add(item)
            out.append(item)
    return out


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def plan_user_change(
    user_id: str,
    user_name: str,
    old_pending: Sequence[str],
    new_pending: Sequence[str],
    old_name: str | None = None,
) -> list[ReconcileOp]:
    """
    Plan the task-side updates for a user whose pendingTasks went old -> new.

    Removals come before additions. Added tasks are pulled out of every other
    user's pendingTasks. A rename refreshes assignedUserName on every task
    still assigned to the user. Identical state plans nothing.
    """
    ops: list[ReconcileOp] = []

    to_remove = _difference(old_pending, new_pending)
    if to_remove:
        ops.append(
            ReconcileOp(
                kind=TASKS,
                filter={"_id": {"$in": to_remove}, "assignedUser": user_id},
                patch=UNASSIGN,
                description=f"unassign tasks {to_remove} dropped by user {user_id}",
            )
        )

    to_add = _difference(new_pending, old_pending)
    if to_add:
        ops.append(
            ReconcileOp(
                kind=TASKS,
                filter={"_id": {"$in": to_add}},
                patch=_assign(user_id, user_name),
                description=f"assign tasks {to_add} to user {user_id}",
            )
        )
        ops.append(
            ReconcileOp(
                kind=USERS,
                filter={"_id": {"$ne": user_id}, "pendingTasks": {"$in": to_add}},
                patch={"$pull": {"pendingTasks": {"$in": to_add}}},
                description=f"pull tasks {to_add} from users other than {user_id}",
            )
        )

    if old_name is not None and old_name != user_name:
        ops.append(
            ReconcileOp(
                kind=TASKS,
                filter={"assignedUser": user_id},
                patch={"$set": {"assignedUserName": user_name}},
                description=f"refresh assignedUserName for user {user_id}",
            )
        )

    logger.debug("User %s reconcile plan: %d op(s)", user_id, len(ops))
    return ops


def plan_user_delete(user_id: str) -> list[ReconcileOp]:
    """A deleted user leaves every task it held unassigned."""
    return [
        ReconcileOp(
            kind=TASKS,
            filter={"assignedUser": user_id},
            patch=UNASSIGN,
            description=f"unassign tasks of deleted user {user_id}",
        )
    ]


def plan_task_change(
    task_id: str,
    old_assignee: str,
    new_assignee: str,
    completed: bool,
) -> list[ReconcileOp]:
    """
    Plan the user-side updates for a task whose assignee went old -> new.

    Both steps may touch the same user document, so they are applied in order.
    A completed task is listed in nobody's pendingTasks.
    """
    ops: list[ReconcileOp] = []

    if old_assignee and old_assignee != new_assignee:
        ops.append(
            ReconcileOp(
                kind=USERS,
                filter={"_id": old_assignee},
                patch={"$pull": {"pendingTasks": task_id}},
                description=f"pull task {task_id} from previous assignee {old_assignee}",
            )
        )

    if new_assignee:
        if completed:
            ops.append(
                ReconcileOp(
                    kind=USERS,
                    filter={"_id": new_assignee},
                    patch={"$pull": {"pendingTasks": task_id}},
                    description=f"pull completed task {task_id} from assignee {new_assignee}",
                )
            )
        else:
            ops.append(
                ReconcileOp(
                    kind=USERS,
                    filter={"_id": new_assignee},
                    patch={"$addToSet": {"pendingTasks": task_id}},
                    description=f"add task {task_id} to assignee {new_assignee}",
                )
            )

    logger.debug("Task %s reconcile plan: %d op(s)", task_id, len(ops))
    return ops


def plan_task_delete(task_id: str) -> list[ReconcileOp]:
    """A deleted task disappears from every user's pendingTasks."""
    return [
        ReconcileOp(
            kind=USERS,
            filter={"pendingTasks": task_id},
            patch={"$pull": {"pendingTasks": task_id}},
            description=f"pull deleted task {task_id} from pendingTasks",
        )
    ]


# ---------------------------------------------------------------------------
# Applying
# ---------------------------------------------------------------------------


async def apply_plan(store: Datastore, ops: Sequence[ReconcileOp], attempts: int = 1) -> ReconcileReport:
    """
    Apply operations strictly in order, each awaited before the next starts.

    A failing operation is retried up to `attempts` times in total, then
    logged and recorded; the remaining operations still run.
    """
    report = ReconcileReport()
    for op in ops:
        for attempt in range(1, attempts + 1):
            try:
                report.modified += await store.update_many(op.kind, op.filter, op.patch)
            except Exception as e:
                if attempt < attempts:
                    logger.warning("Retrying (%d/%d): %s", attempt, attempts, op.description)
                    continue
                logger.exception("Reconciliation failed: %s", op.description)
                report.failures.append(ReconciliationFailure(op.description, e))
            else:
                report.applied.append(op)
            break
    return report
