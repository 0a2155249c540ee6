"""
Postgres datastore.

One row per document in the users / tasks tables (see alembic/versions).
Filters and patches in the Mongo-style shapes of repos.documents are
compiled to SQL against a per-collection column map; every write is a
single statement, so updates are atomic per row and nothing more.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import asyncpg

from taskboard import db
from taskboard.errors import BadInput, StorageFailure, UniqueConstraintViolation
from taskboard.models.query import ListQuery
from taskboard.models.task import Task
from taskboard.models.user import User
from taskboard.repos.datastore import TASKS, USERS, Datastore
from taskboard.repos.documents import check_projection, is_operator_doc, project

logger = logging.getLogger(__name__)

SCALAR = "scalar"
ARRAY = "array"
TIMESTAMP = "timestamp"

# wire field -> (column, column type)
COLUMNS: dict[str, dict[str, tuple[str, str]]] = {
    USERS: {
        "_id": ("id", SCALAR),
        "name": ("name", SCALAR),
        "email": ("email", SCALAR),
        "pendingTasks": ("pending_tasks", ARRAY),
        "dateCreated": ("date_created", TIMESTAMP),
    },
    TASKS: {
        "_id": ("id", SCALAR),
        "name": ("name", SCALAR),
        "description": ("description", SCALAR),
        "deadline": ("deadline", TIMESTAMP),
        "completed": ("completed", SCALAR),
        "assignedUser": ("assigned_user", SCALAR),
        "assignedUserName": ("assigned_user_name", SCALAR),
        "dateCreated": ("date_created", TIMESTAMP),
    },
}

_COMPARISONS = {"$gt": ">", "$gte": ">=", "$lt": "<", "$lte": "<="}


def _parse_timestamp(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise BadInput(f"Invalid timestamp in filter: {value}") from e
    return value


class _SqlBuilder:
    """Accumulates positional parameters while compiling one statement."""

    def __init__(self, kind: str, params: list[Any] | None = None):
        self.columns = COLUMNS[kind]
        self.params: list[Any] = params if params is not None else []

    def bind(self, value: Any) -> str:
        self.params.append(value)
        return f"${len(self.params)}"

    def column(self, field: str) -> tuple[str, str]:
        try:
            return self.columns[field]
        except KeyError:
            raise BadInput(f"Unknown field: {field}") from None

    # -- filters --

    def where(self, filter_doc: dict[str, Any] | None) -> str:
        if not filter_doc:
            return "TRUE"
        clauses = []
        for key, cond in filter_doc.items():
            if key in ("$and", "$or"):
                if not isinstance(cond, list) or not cond:
                    raise BadInput(f"{key} needs a non-empty array of filters")
                joiner = " AND " if key == "$and" else " OR "
                clauses.append("(" + joiner.join(self.where(sub) for sub in cond) + ")")
            elif key.startswith("$"):
                raise BadInput(f"Unsupported filter operator: {key}")
            else:
                clauses.append(self._field(key, cond))
        return " AND ".join(clauses)

    def _field(self, field: str, cond: Any) -> str:
        col, col_type = self.column(field)
        ops = cond if is_operator_doc(cond) else {"$eq": cond}
        clauses = []
        for op, value in ops.items():
            if col_type == TIMESTAMP:
                value = [_parse_timestamp(v) for v in value] if isinstance(value, list) else _parse_timestamp(value)
            clauses.append(self._array_op(col, op, value) if col_type == ARRAY else self._scalar_op(col, op, value))
        return "(" + " AND ".join(clauses) + ")"

    def _scalar_op(self, col: str, op: str, value: Any) -> str:
        if op == "$eq":
            return f"{col} IS NULL" if value is None else f"{col} = {self.bind(value)}"
        if op == "$ne":
            return f"{col} IS DISTINCT FROM {self.bind(value)}"
        if op in ("$in", "$nin"):
            if not isinstance(value, list):
                raise BadInput("$in / $nin need an array")
            clause = f"{col} = ANY({self.bind(value)})"
            return clause if op == "$in" else f"NOT ({clause})"
        if op in _COMPARISONS:
            return f"{col} {_COMPARISONS[op]} {self.bind(value)}"
        if op == "$exists":
            return "TRUE" if value else "FALSE"
        raise BadInput(f"Unsupported filter operator: {op}")

    def _array_op(self, col: str, op: str, value: Any) -> str:
        if op in ("$eq", "$ne"):
            if isinstance(value, list):
                clause = f"{col} = {self.bind(value)}::text[]"
            else:
                clause = f"{self.bind(value)} = ANY({col})"
            return clause if op == "$eq" else f"NOT ({clause})"
        if op in ("$in", "$nin"):
            if not isinstance(value, list):
                raise BadInput("$in / $nin need an array")
            clause = f"{col} && {self.bind(value)}::text[]"
            return clause if op == "$in" else f"NOT ({clause})"
        if op == "$exists":
            return "TRUE" if value else "FALSE"
        raise BadInput(f"Unsupported operator on array field: {op}")

    # -- patches --

    def set_clause(self, patch: dict[str, Any]) -> str:
        assignments = []
        for op, fields in patch.items():
            for field, value in fields.items():
                col, col_type = self.column(field)
                if op == "$set":
                    if col_type == TIMESTAMP:
                        value = _parse_timestamp(value)
                    assignments.append(f"{col} = {self.bind(value)}")
                elif op == "$pull" and col_type == ARRAY:
                    if is_operator_doc(value) and "$in" in value:
                        assignments.append(
                            f"{col} = ARRAY(SELECT v FROM unnest({col}) AS v "
                            f"WHERE v <> ALL({self.bind(list(value['$in']))}::text[]))"
                        )
                    else:
                        assignments.append(f"{col} = array_remove({col}, {self.bind(value)}::text)")
                elif op == "$addToSet" and col_type == ARRAY:
                    p = self.bind(value)
                    assignments.append(
                        f"{col} = CASE WHEN {p}::text = ANY({col}) THEN {col} ELSE array_append({col}, {p}::text) END"
                    )
                else:
                    raise ValueError(f"Unsupported update {op} on {field}")
        return ", ".join(assignments)

    def order_by(self, sort: dict[str, int] | None) -> str:
        if not sort:
            return ""
        parts = []
        for field, direction in sort.items():
            col, _ = self.column(field)
            parts.append(f"{col} {'ASC' if direction == 1 else 'DESC'}")
        return " ORDER BY " + ", ".join(parts)


def _row_to_document(kind: str, row: asyncpg.Record) -> dict[str, Any]:
    """Convert a database row to a wire document via its model."""
    if kind == USERS:
        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            pending_tasks=list(row["pending_tasks"] or []),
            date_created=row["date_created"],
        ).to_document()
    return Task(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        deadline=row["deadline"],
        completed=row["completed"],
        assigned_user=row["assigned_user"],
        assigned_user_name=row["assigned_user_name"],
        date_created=row["date_created"],
    ).to_document()


class PostgresDatastore(Datastore):
    """Datastore backed by the asyncpg pool in taskboard.db."""

    async def _fetch(self, sql: str, *params: Any) -> list[asyncpg.Record]:
        try:
            async with db.connection() as conn:
                return await conn.fetch(sql, *params)
        except asyncpg.PostgresError as e:
            logger.exception("Query failed: %s", sql)
            raise StorageFailure("Error reading from the database") from e

    async def get(self, kind: str, doc_id: str) -> dict[str, Any] | None:
        rows = await self._fetch(f"SELECT * FROM {kind} WHERE id = $1", doc_id)  # nosec B608
        return _row_to_document(kind, rows[0]) if rows else None

    async def find_many(self, kind: str, filter_doc: dict[str, Any]) -> list[dict[str, Any]]:
        builder = _SqlBuilder(kind)
        where = builder.where(filter_doc)
        rows = await self._fetch(f"SELECT * FROM {kind} WHERE {where}", *builder.params)  # nosec B608
        return [_row_to_document(kind, r) for r in rows]

    async def save(self, kind: str, doc: dict[str, Any]) -> dict[str, Any]:
        columns = COLUMNS[kind]
        values: dict[str, Any] = {}
        for field, (col, col_type) in columns.items():
            if field == "dateCreated":
                continue
            value = doc.get(field)
            if col_type == TIMESTAMP:
                value = _parse_timestamp(value)
            values[col] = value
        values["date_created"] = _parse_timestamp(doc.get("dateCreated")) or datetime.now(UTC)

        cols = list(values)
        placeholders = ", ".join(f"${i + 1}" for i in range(len(cols)))
        updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in cols if c not in ("id", "date_created"))
        sql = f"""
            INSERT INTO {kind} ({", ".join(cols)})
            VALUES ({placeholders})
            ON CONFLICT (id) DO UPDATE SET {updates}
            RETURNING *
        """  # nosec B608
        try:
            async with db.connection() as conn:
                row = await conn.fetchrow(sql, *values.values())
        except asyncpg.UniqueViolationError as e:
            raise UniqueConstraintViolation(str(e)) from e
        except asyncpg.PostgresError as e:
            logger.exception("Save failed for %s %s", kind, doc.get("_id"))
            raise StorageFailure("Error saving document") from e
        return _row_to_document(kind, row)

    async def delete(self, kind: str, doc_id: str) -> bool:
        try:
            async with db.connection() as conn:
                result = await conn.execute(f"DELETE FROM {kind} WHERE id = $1", doc_id)  # nosec B608
        except asyncpg.PostgresError as e:
            logger.exception("Delete failed for %s %s", kind, doc_id)
            raise StorageFailure("Error deleting document") from e
        return result == "DELETE 1"

    async def update_many(self, kind: str, filter_doc: dict[str, Any], patch: dict[str, Any]) -> int:
        builder = _SqlBuilder(kind)
        set_clause = builder.set_clause(patch)
        where = builder.where(filter_doc)
        try:
            async with db.connection() as conn:
                result = await conn.execute(
                    f"UPDATE {kind} SET {set_clause} WHERE {where}",  # nosec B608
                    *builder.params,
                )
        except asyncpg.PostgresError as e:
            logger.exception("update_many failed on %s", kind)
            raise StorageFailure("Error updating documents") from e
        # "UPDATE <n>"
        return int(result.split()[-1])

    async def query(self, kind: str, q: ListQuery) -> list[dict[str, Any]] | int:
        check_projection(q.select)
        builder = _SqlBuilder(kind)
        sql = f"SELECT * FROM {kind} WHERE {builder.where(q.where)}{builder.order_by(q.sort)}"  # nosec B608
        if q.skip:
            sql += f" OFFSET {builder.bind(q.skip)}"
        if q.limit:
            sql += f" LIMIT {builder.bind(q.limit)}"
        if q.count:
            rows = await self._fetch(f"SELECT count(*) AS n FROM ({sql}) AS matched", *builder.params)  # nosec B608
            return int(rows[0]["n"])
        rows = await self._fetch(sql, *builder.params)
        return [project(_row_to_document(kind, r), q.select) for r in rows]

    async def close(self) -> None:
        await db.close_pool()
