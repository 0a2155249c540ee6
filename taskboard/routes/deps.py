"""Request-scoped access to the datastore and mutators held on app.state."""

from __future__ import annotations

from fastapi import Request

from taskboard.errors import NotFound
from taskboard.models.query import ListQuery
from taskboard.repos.datastore import Datastore
from taskboard.repos.documents import check_projection, project
from taskboard.services.mutators import TaskMutator, UserMutator
from taskboard.services.validation import is_valid_id


def get_store(request: Request) -> Datastore:
    return request.app.state.store


def get_user_mutator(request: Request) -> UserMutator:
    return request.app.state.user_mutator


def get_task_mutator(request: Request) -> TaskMutator:
    return request.app.state.task_mutator


async def fetch_one(store: Datastore, kind: str, doc_id: str, select: str | None, label: str) -> dict:
    """
    Load one document for a GET-by-id, applying an optional projection.

    Raises:
        NotFound: malformed or unknown id
        BadInput: malformed select
    """
    q = ListQuery.from_params(select=select)
    check_projection(q.select)
    if not is_valid_id(doc_id):
        raise NotFound(f"{label} not found")
    doc = await store.get(kind, doc_id)
    if doc is None:
        raise NotFound(f"{label} not found")
    return project(doc, q.select)
