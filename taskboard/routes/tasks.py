"""Task routes: list, create, get, replace, delete."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from taskboard import config
from taskboard.models.envelope import Envelope
from taskboard.models.query import ListQuery
from taskboard.models.task import TaskWrite
from taskboard.repos.datastore import TASKS, Datastore
from taskboard.routes.deps import fetch_one, get_store, get_task_mutator
from taskboard.services.mutators import TaskMutator

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("", status_code=200)
async def list_tasks(
    where: str | None = None,
    sort: str | None = None,
    select: str | None = None,
    skip: str | None = None,
    limit: str | None = None,
    count: str | None = None,
    store: Datastore = Depends(get_store),
) -> Envelope:
    """List tasks (100 per page unless limit is given)."""
    q = ListQuery.from_params(
        where=where,
        sort=sort,
        select=select,
        skip=skip,
        limit=limit,
        count=count,
        default_limit=config.settings.TASK_LIST_DEFAULT_LIMIT,
    )
    return Envelope(message="OK", data=await store.query(TASKS, q))


@router.post("", status_code=201)
async def create_task(
    body: TaskWrite,
    mutator: TaskMutator = Depends(get_task_mutator),
) -> Envelope:
    """Create a task, optionally assigned by user id or name."""
    result = await mutator.create(body)
    return Envelope(message="Created", data=result.entity.to_document())


@router.get("/{task_id}", status_code=200)
async def get_task(
    task_id: str,
    select: str | None = None,
    store: Datastore = Depends(get_store),
) -> Envelope:
    """Get a single task by ID."""
    return Envelope(message="OK", data=await fetch_one(store, TASKS, task_id, select, "Task"))


@router.put("/{task_id}", status_code=200)
async def replace_task(
    task_id: str,
    body: TaskWrite,
    mutator: TaskMutator = Depends(get_task_mutator),
) -> Envelope:
    """Replace a task entirely."""
    result = await mutator.replace(task_id, body)
    return Envelope(message="OK", data=result.entity.to_document())


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: str,
    mutator: TaskMutator = Depends(get_task_mutator),
) -> Response:
    """Delete a task and drop it from pendingTasks."""
    await mutator.delete(task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
