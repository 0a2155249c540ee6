"""User models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class User(BaseModel):
    """Core user model. Represents one document in the users collection."""

    model_config = {"populate_by_name": True}

    id: str = Field(alias="_id")
    name: str
    email: str
    pending_tasks: list[str] = Field(default_factory=list, alias="pendingTasks")
    date_created: datetime | None = Field(default=None, alias="dateCreated")

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> User:
        return cls.model_validate(doc)

    def to_document(self) -> dict[str, Any]:
        """Wire/storage shape: Mongo-style keys, JSON-safe values."""
        return self.model_dump(by_alias=True, mode="json")


class UserWrite(BaseModel):
    """What the client sends to create or replace a user. Checked by the mutator."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    name: str | None = None
    email: str | None = None
    pending_tasks: list[str] | None = Field(default=None, alias="pendingTasks")
