"""
Validation service.

Stateless format checks plus two resolvers that read the datastore. The
datastore handle is passed in; nothing here holds state between calls.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any
from uuid import UUID

from taskboard.errors import (
    AmbiguousName,
    InvalidIdentifier,
    MalformedIdentifier,
    NameMismatch,
    TaskAlreadyCompleted,
    TaskNotFound,
    UnknownUser,
)
from taskboard.models.task import UNASSIGNED_NAME, Task
from taskboard.models.user import User
from taskboard.repos.datastore import TASKS, USERS, Datastore

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


def is_valid_email(value: Any) -> bool:
    """One @, no whitespace, a dot in the domain part. No DNS lookup."""
    return isinstance(value, str) and bool(_EMAIL_RE.fullmatch(value))


def is_valid_id(value: Any) -> bool:
    """Identifiers are canonical UUID strings."""
    if not isinstance(value, str):
        return False
    try:
        return str(UUID(value)) == value.lower()
    except ValueError:
        return False


def parse_date(value: Any) -> datetime | None:
    """
    Parse a deadline into an aware UTC datetime.

    Accepts ISO-8601 dates/datetimes, RFC 2822 strings and epoch milliseconds.
    Naive values are taken as UTC. Returns None if unparseable.
    """
    if isinstance(value, bool) or value is None:
        return None
    parsed: datetime | None = None
    if isinstance(value, int | float):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = parsedate_to_datetime(text)
            except (TypeError, ValueError, IndexError):
                return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    try:
        return parsed.astimezone(UTC)
    except OverflowError:
        # e.g. 9999-12-31T23:00:00-05:00 falls past datetime.max in UTC
        return None


def is_valid_date(value: Any) -> bool:
    """Anything parse_date can turn into a timestamp. Past and future both pass."""
    return parse_date(value) is not None


async def resolve_assignee(store: Datastore, by_id: str | None, by_name: str | None) -> User | None:
    """
    Resolve a task's assignee from an id, a name, or both.

    Both absent (or the "unassigned" sentinel name alone) means no assignee.

    Raises:
        InvalidIdentifier: by_id is not a well-formed identifier
        UnknownUser: no user with that id / name
        NameMismatch: by_id resolves to a user whose name is not by_name
        AmbiguousName: by_name alone matches more than one user
    """
    if not by_id and (not by_name or by_name == UNASSIGNED_NAME):
        return None

    if by_id:
        if not is_valid_id(by_id):
            raise InvalidIdentifier(by_id)
        doc = await store.get(USERS, by_id)
        if doc is None:
            raise UnknownUser("Assigned user does not exist")
        user = User.from_document(doc)
        if by_name and by_name != user.name:
            raise NameMismatch()
        return user

    docs = await store.find_many(USERS, {"name": by_name})
    if not docs:
        raise UnknownUser("Assigned user name does not exist")
    if len(docs) > 1:
        raise AmbiguousName(by_name)
    return User.from_document(docs[0])


async def validate_pending_set(store: Datastore, ids: Sequence[str] | None) -> list[Task]:
    """
    Check a proposed pendingTasks list and return the resolved tasks.

    Every check reports all offending ids, and the checks run in order:
    malformed ids, then missing tasks, then completed tasks.

    Raises:
        MalformedIdentifier, TaskNotFound, TaskAlreadyCompleted
    """
    if not ids:
        return []

    malformed = [i for i in ids if not is_valid_id(i)]
    if malformed:
        raise MalformedIdentifier(malformed)

    docs = await store.find_many(TASKS, {"_id": {"$in": list(ids)}})
    by_id = {d["_id"]: Task.from_document(d) for d in docs}

    missing = [i for i in ids if i not in by_id]
    if missing:
        raise TaskNotFound(missing)

    completed = [i for i in ids if by_id[i].completed]
    if completed:
        raise TaskAlreadyCompleted(completed)

    return [by_id[i] for i in ids]
