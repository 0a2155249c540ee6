"""Uniform response body: {"message": ..., "data": ...}."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class Envelope(BaseModel):
    """What every non-204 response returns."""

    message: str
    data: Any = None
