"""List query parameters: filter, sort order, projection, skip/limit, count."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field

from taskboard.errors import BadInput


def _parse_json_param(name: str, raw: str | None) -> dict[str, Any] | None:
    if raw is None or raw == "":
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise BadInput(f"Invalid JSON in '{name}' parameter") from e
    if not isinstance(value, dict):
        raise BadInput(f"'{name}' must be a JSON object")
    return value


def _parse_int_param(name: str, raw: str | None, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise BadInput(f"'{name}' must be an integer") from e
    if value < 0:
        raise BadInput(f"'{name}' must not be negative")
    return value


# Mongoose accepts these alongside 1 / -1.
_SORT_DIRECTIONS = {"asc": 1, "ascending": 1, "desc": -1, "descending": -1}


def _sort_direction(field: str, direction: Any) -> int:
    if isinstance(direction, str) and direction.lower() in _SORT_DIRECTIONS:
        return _SORT_DIRECTIONS[direction.lower()]
    if isinstance(direction, int) and not isinstance(direction, bool) and direction in (1, -1):
        return direction
    raise BadInput(f"Invalid sort direction for '{field}'")


class ListQuery(BaseModel):
    """What a list endpoint hands to the datastore's query executor."""

    where: dict[str, Any] = Field(default_factory=dict)
    sort: dict[str, int] | None = None
    select: dict[str, int] | None = None
    skip: int = 0
    limit: int = 0  # 0 = unlimited
    count: bool = False

    @classmethod
    def from_params(
        cls,
        *,
        where: str | None = None,
        sort: str | None = None,
        select: str | None = None,
        skip: str | None = None,
        limit: str | None = None,
        count: str | None = None,
        default_limit: int = 0,
    ) -> ListQuery:
        """
        Build a query from raw (JSON-encoded) query string values.

        Raises:
            BadInput: on malformed JSON or non-integer skip/limit
        """
        sort_doc = _parse_json_param("sort", sort)
        if sort_doc is not None:
            sort_doc = {field: _sort_direction(field, direction) for field, direction in sort_doc.items()}
        select_doc = _parse_json_param("select", select)
        if select_doc is not None:
            select_doc = {k: 1 if v else 0 for k, v in select_doc.items()}
        return cls(
            where=_parse_json_param("where", where) or {},
            sort=sort_doc,
            select=select_doc,
            skip=_parse_int_param("skip", skip, 0),
            limit=_parse_int_param("limit", limit, default_limit),
            count=(count or "").lower() == "true",
        )
