"""User routes: list, create, get, replace, delete."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from taskboard import config
from taskboard.models.envelope import Envelope
from taskboard.models.query import ListQuery
from taskboard.models.user import UserWrite
from taskboard.repos.datastore import USERS, Datastore
from taskboard.routes.deps import fetch_one, get_store, get_user_mutator
from taskboard.services.mutators import UserMutator

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", status_code=200)
async def list_users(
    where: str | None = None,
    sort: str | None = None,
    select: str | None = None,
    skip: str | None = None,
    limit: str | None = None,
    count: str | None = None,
    store: Datastore = Depends(get_store),
) -> Envelope:
    """List users matching `where`, or count them with count=true."""
    q = ListQuery.from_params(
        where=where,
        sort=sort,
        select=select,
        skip=skip,
        limit=limit,
        count=count,
        default_limit=config.settings.USER_LIST_DEFAULT_LIMIT,
    )
    return Envelope(message="OK", data=await store.query(USERS, q))


@router.post("", status_code=201)
async def create_user(
    body: UserWrite,
    mutator: UserMutator = Depends(get_user_mutator),
) -> Envelope:
    """Create a user; any pendingTasks are reassigned to it."""
    result = await mutator.create(body)
    return Envelope(message="Created", data=result.entity.to_document())


@router.get("/{user_id}", status_code=200)
async def get_user(
    user_id: str,
    select: str | None = None,
    store: Datastore = Depends(get_store),
) -> Envelope:
    """Get a single user by ID."""
    return Envelope(message="OK", data=await fetch_one(store, USERS, user_id, select, "User"))


@router.put("/{user_id}", status_code=200)
async def replace_user(
    user_id: str,
    body: UserWrite,
    mutator: UserMutator = Depends(get_user_mutator),
) -> Envelope:
    """Replace a user entirely."""
    result = await mutator.replace(user_id, body)
    return Envelope(message="OK", data=result.entity.to_document())


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: str,
    mutator: UserMutator = Depends(get_user_mutator),
) -> Response:
    """Delete a user and unassign its tasks."""
    await mutator.delete(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
