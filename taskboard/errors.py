"""
Error taxonomy for mutations.

Everything raised before the primary write is a TaskboardError and is
reported to the caller. ReconciliationFailure is only ever recorded: once
the primary document is persisted the mutation is a success.
"""

from __future__ import annotations

from collections.abc import Iterable


class TaskboardError(Exception):
    """Base class for errors reported to the caller."""

    status_code = 500
    message = "Internal Server Error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class BadInput(TaskboardError):
    """Missing required field, malformed date/email/identifier, bad query."""

    status_code = 400
    message = "Bad Request"


class UniqueConstraintViolation(BadInput):
    """A unique field (User email) collides with an existing document."""


class NotFound(TaskboardError):
    """Unknown or malformed identifier for the primary entity."""

    status_code = 404
    message = "Not Found"


class StorageFailure(TaskboardError):
    """Generic backend error during a read or write."""


# ---------------------------------------------------------------------------
# Relationship validation
# ---------------------------------------------------------------------------


class RelationshipInvalid(BadInput):
    """The relationship payload (assignee or pending set) cannot be accepted."""


class InvalidIdentifier(RelationshipInvalid):
    def __init__(self, value: str):
        super().__init__("Invalid assignedUser ID format")
        self.value = value


class UnknownUser(RelationshipInvalid):
    pass


class NameMismatch(RelationshipInvalid):
    def __init__(self) -> None:
        super().__init__("Assigned user name does not match the user")


class AmbiguousName(RelationshipInvalid):
    def __init__(self, name: str):
        super().__init__("Multiple users with that name")
        self.name = name


class _TaskSetError(RelationshipInvalid):
    prefix = ""

    def __init__(self, ids: Iterable[str]):
        self.ids = list(ids)
        super().__init__(f"{self.prefix}: {', '.join(self.ids)}")


class MalformedIdentifier(_TaskSetError):
    prefix = "Invalid task id(s)"


class TaskNotFound(_TaskSetError):
    prefix = "Task id(s) not found"


class TaskAlreadyCompleted(_TaskSetError):
    prefix = "Tasks already completed cannot be pending"


# ---------------------------------------------------------------------------
# Post-commit
# ---------------------------------------------------------------------------


class ReconciliationFailure(Exception):
    """A cross-entity update failed after the primary write succeeded."""

    def __init__(self, description: str, cause: BaseException):
        super().__init__(f"{description}: {cause}")
        self.description = description
        self.cause = cause
