"""
Pydantic models for Taskboard.

All data shapes defined here. No imports from db, repos, or routes.
"""

from taskboard.models.envelope import Envelope
from taskboard.models.query import ListQuery
from taskboard.models.task import UNASSIGNED_NAME, Task, TaskWrite
from taskboard.models.user import User, UserWrite

__all__ = [
    # User models
    "User",
    "UserWrite",
    # Task models
    "Task",
    "TaskWrite",
    "UNASSIGNED_NAME",
    # Transport
    "Envelope",
    "ListQuery",
]
