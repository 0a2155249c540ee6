"""
Document helpers shared by the datastore backends.

Filters, patches, sort orders and projections use the Mongo-style shapes the
list endpoints accept: {"field": value}, {"field": {"$in": [...]}},
{"$set": {...}}, {"$pull": {...}}, {"$addToSet": {...}}, {"name": 1, "_id": 0}.
Fields are flat; array fields match by membership.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import cmp_to_key
from typing import Any

from taskboard.errors import BadInput

_MISSING = object()


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def _equals(actual: Any, expected: Any) -> bool:
    if isinstance(actual, list) and not isinstance(expected, list):
        return expected in actual
    return actual == expected


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(actual: Any, expected: Any) -> bool:
        values = actual if isinstance(actual, list) else [actual]
        for value in values:
            if value is _MISSING or value is None:
                continue
            try:
                if op(value, expected):
                    return True
            except TypeError:
                continue
        return False

    return check


def _in(actual: Any, expected: Any) -> bool:
    if not isinstance(expected, list):
        raise BadInput("$in / $nin need an array")
    return any(_equals(actual, candidate) for candidate in expected)


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": _equals,
    "$ne": lambda actual, expected: not _equals(actual, expected),
    "$in": _in,
    "$nin": lambda actual, expected: not _in(actual, expected),
    "$gt": _compare(lambda a, b: a > b),
    "$gte": _compare(lambda a, b: a >= b),
    "$lt": _compare(lambda a, b: a < b),
    "$lte": _compare(lambda a, b: a <= b),
    "$exists": lambda actual, expected: (actual is not _MISSING) == bool(expected),
}


def is_operator_doc(cond: Any) -> bool:
    return isinstance(cond, dict) and bool(cond) and all(k.startswith("$") for k in cond)


def matches(doc: dict[str, Any], filter_doc: dict[str, Any] | None) -> bool:
    """
    True if the document satisfies the filter.

    Raises:
        BadInput: on an unknown operator or a malformed $and / $or
    """
    if not filter_doc:
        return True
    for key, cond in filter_doc.items():
        if key in ("$and", "$or"):
            if not isinstance(cond, list) or not all(isinstance(c, dict) for c in cond):
                raise BadInput(f"{key} needs an array of filters")
            results = (matches(doc, sub) for sub in cond)
            ok = all(results) if key == "$and" else any(results)
        elif key.startswith("$"):
            raise BadInput(f"Unsupported filter operator: {key}")
        else:
            actual = doc.get(key, _MISSING)
            ok = _match_field(actual, cond)
        if not ok:
            return False
    return True


def _match_field(actual: Any, cond: Any) -> bool:
    if not is_operator_doc(cond):
        return actual is not _MISSING and _equals(actual, cond)
    for op, expected in cond.items():
        check = _OPERATORS.get(op)
        if check is None:
            raise BadInput(f"Unsupported filter operator: {op}")
        if op not in ("$exists", "$ne", "$nin") and actual is _MISSING:
            return False
        if not check(actual, expected):
            return False
    return True


# ---------------------------------------------------------------------------
# Patches
# ---------------------------------------------------------------------------


def apply_patch(doc: dict[str, Any], patch: dict[str, Any]) -> bool:
    """
    Apply an update patch in place. Returns True if the document changed.

    Supported: $set, $pull (value or {"$in": [...]}), $addToSet (single value).
    """
    before = {k: (list(v) if isinstance(v, list) else v) for k, v in doc.items()}
    for op, fields in patch.items():
        if op == "$set":
            doc.update(fields)
        elif op == "$pull":
            for field, cond in fields.items():
                current = doc.get(field) or []
                if is_operator_doc(cond):
                    doc[field] = [v for v in current if not _match_field(v, cond)]
                else:
                    doc[field] = [v for v in current if v != cond]
        elif op == "$addToSet":
            for field, value in fields.items():
                current = list(doc.get(field) or [])
                if value not in current:
                    current.append(value)
                doc[field] = current
        else:
            raise ValueError(f"Unsupported update operator: {op}")
    return doc != before


# ---------------------------------------------------------------------------
# Sort & projection
# ---------------------------------------------------------------------------


def _sort_value_cmp(a: Any, b: Any) -> int:
    # Missing / None sort first, like Mongo.
    if a is None and b is None:
        return 0
    if a is None:
        return -1
    if b is None:
        return 1
    try:
        return (a > b) - (a < b)
    except TypeError:
        return (str(a) > str(b)) - (str(a) < str(b))


def sort_documents(docs: list[dict[str, Any]], sort: dict[str, int] | None) -> list[dict[str, Any]]:
    if not sort:
        return docs

    def cmp(x: dict[str, Any], y: dict[str, Any]) -> int:
        for field, direction in sort.items():
            result = _sort_value_cmp(x.get(field), y.get(field))
            if result:
                return result * direction
        return 0

    return sorted(docs, key=cmp_to_key(cmp))


def check_projection(select: dict[str, int] | None) -> None:
    """
    Reject projections that mix inclusion and exclusion.

    Raises:
        BadInput: if fields other than _id are both included and excluded
    """
    if not select:
        return
    flags = {bool(v) for k, v in select.items() if k != "_id"}
    if len(flags) > 1:
        raise BadInput("Projection cannot mix inclusion and exclusion")


def project(doc: dict[str, Any], select: dict[str, int] | None) -> dict[str, Any]:
    """Apply a projection; _id is kept unless explicitly excluded."""
    if not select:
        return doc
    include_id = bool(select.get("_id", 1))
    fields = {k: bool(v) for k, v in select.items() if k != "_id"}
    if fields and any(fields.values()):
        out = {k: doc[k] for k in fields if k in doc}
    else:
        out = {k: v for k, v in doc.items() if k not in fields}
    if include_id and "_id" in doc:
        out = {"_id": doc["_id"], **out}
    else:
        out.pop("_id", None)
    return out
