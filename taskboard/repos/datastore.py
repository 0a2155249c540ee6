"""
Datastore interface.

The core only ever talks to this: single-document reads and writes that are
atomic per document, plus update_many whose per-document updates are atomic
but not atomic as a batch. There are no multi-document transactions.
Implement with Postgres for production, or in-memory for tests.
"""

from __future__ import annotations

from typing import Any

from taskboard.models.query import ListQuery

USERS = "users"
TASKS = "tasks"
KINDS = (USERS, TASKS)


class Datastore:
    """Abstract document store for the users and tasks collections."""

    async def get(self, kind: str, doc_id: str) -> dict[str, Any] | None:
        """Fetch one document by _id. Returns None if not found."""
        raise NotImplementedError

    async def find_many(self, kind: str, filter_doc: dict[str, Any]) -> list[dict[str, Any]]:
        """Fetch every document matching the filter."""
        raise NotImplementedError

    async def save(self, kind: str, doc: dict[str, Any]) -> dict[str, Any]:
        """
        Insert or fully replace a document keyed by its _id.

        dateCreated is stamped on insert and preserved on replace.

        Raises:
            UniqueConstraintViolation: if a unique field (User email) collides
            StorageFailure: on any other backend error
        """
        raise NotImplementedError

    async def delete(self, kind: str, doc_id: str) -> bool:
        """Remove a document. Returns False if it did not exist."""
        raise NotImplementedError

    async def update_many(self, kind: str, filter_doc: dict[str, Any], patch: dict[str, Any]) -> int:
        """Apply a patch to every matching document. Returns the number modified."""
        raise NotImplementedError

    async def query(self, kind: str, q: ListQuery) -> list[dict[str, Any]] | int:
        """Run a list query: filter, sort, skip/limit, then projection or count."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend resources."""
        return None
