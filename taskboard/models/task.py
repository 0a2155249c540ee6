"""Task models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# Denormalized assignee name for a task nobody holds.
UNASSIGNED_NAME = "unassigned"


class Task(BaseModel):
    """Core task model. Represents one document in the tasks collection."""

    model_config = {"populate_by_name": True}

    id: str = Field(alias="_id")
    name: str
    description: str = ""
    deadline: datetime
    completed: bool = False
    assigned_user: str = Field(default="", alias="assignedUser")
    assigned_user_name: str = Field(default=UNASSIGNED_NAME, alias="assignedUserName")
    date_created: datetime | None = Field(default=None, alias="dateCreated")

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Task:
        return cls.model_validate(doc)

    def to_document(self) -> dict[str, Any]:
        """Wire/storage shape: Mongo-style keys, JSON-safe values."""
        return self.model_dump(by_alias=True, mode="json")

    @property
    def is_pending(self) -> bool:
        """Assigned and not completed: must be listed in the assignee's pendingTasks."""
        return bool(self.assigned_user) and not self.completed


class TaskWrite(BaseModel):
    """What the client sends to create or replace a task. Checked by the mutator."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    name: str | None = None
    description: str | None = None
    deadline: str | int | float | None = None
    completed: bool | str | int | None = None
    assigned_user: str | None = Field(default=None, alias="assignedUser")
    assigned_user_name: str | None = Field(default=None, alias="assignedUserName")
