"""In-memory datastore. Used by tests and the default development server."""

from __future__ import annotations

import copy
from datetime import UTC, datetime
from typing import Any

from taskboard.errors import UniqueConstraintViolation
from taskboard.models.query import ListQuery
from taskboard.repos.datastore import KINDS, USERS, Datastore
from taskboard.repos.documents import (
    apply_patch,
    check_projection,
    matches,
    project,
    sort_documents,
)

# Fields that must be unique per collection.
_UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {USERS: ("email",)}


class MemoryDatastore(Datastore):
    """
    Dict-backed collections.

    No method awaits between reading and writing a document, so every
    single-document operation is atomic on the event loop. Documents are
    deep-copied in and out so callers never share state with the store.
    """

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = {kind: {} for kind in KINDS}

    def _collection(self, kind: str) -> dict[str, dict[str, Any]]:
        try:
            return self.collections[kind]
        except KeyError:
            raise ValueError(f"Unknown collection: {kind}") from None

    async def get(self, kind: str, doc_id: str) -> dict[str, Any] | None:
        doc = self._collection(kind).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find_many(self, kind: str, filter_doc: dict[str, Any]) -> list[dict[str, Any]]:
        return [copy.deepcopy(d) for d in self._collection(kind).values() if matches(d, filter_doc)]

    async def save(self, kind: str, doc: dict[str, Any]) -> dict[str, Any]:
        collection = self._collection(kind)
        doc_id = doc["_id"]
        for field in _UNIQUE_FIELDS.get(kind, ()):
            for other_id, other in collection.items():
                if other_id != doc_id and other.get(field) == doc.get(field):
                    raise UniqueConstraintViolation(f"duplicate {field}: {doc.get(field)}")

        stored = copy.deepcopy(doc)
        existing = collection.get(doc_id)
        if existing is not None and existing.get("dateCreated"):
            stored["dateCreated"] = existing["dateCreated"]
        elif not stored.get("dateCreated"):
            stored["dateCreated"] = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        collection[doc_id] = stored
        return copy.deepcopy(stored)

    async def delete(self, kind: str, doc_id: str) -> bool:
        return self._collection(kind).pop(doc_id, None) is not None

    async def update_many(self, kind: str, filter_doc: dict[str, Any], patch: dict[str, Any]) -> int:
        modified = 0
        for doc in self._collection(kind).values():
            if matches(doc, filter_doc) and apply_patch(doc, patch):
                modified += 1
        return modified

    async def query(self, kind: str, q: ListQuery) -> list[dict[str, Any]] | int:
        check_projection(q.select)
        docs = [d for d in self._collection(kind).values() if matches(d, q.where)]
        docs = sort_documents(docs, q.sort)
        docs = docs[q.skip :]
        if q.limit:
            docs = docs[: q.limit]
        if q.count:
            return len(docs)
        return [project(copy.deepcopy(d), q.select) for d in docs]
