"""
Taskboard configuration: all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings from environment variables."""

    # Storage
    STORAGE_BACKEND: str = os.environ.get("STORAGE_BACKEND", "memory").lower()
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")
    DB_POOL_MIN_SIZE: int = int(os.environ.get("DB_POOL_MIN_SIZE", "2"))
    DB_POOL_MAX_SIZE: int = int(os.environ.get("DB_POOL_MAX_SIZE", "20"))
    DB_COMMAND_TIMEOUT: float = float(os.environ.get("DB_COMMAND_TIMEOUT", "60"))

    # List endpoints (0 = unlimited)
    USER_LIST_DEFAULT_LIMIT: int = int(os.environ.get("USER_LIST_DEFAULT_LIMIT", "0"))
    TASK_LIST_DEFAULT_LIMIT: int = int(os.environ.get("TASK_LIST_DEFAULT_LIMIT", "100"))

    # Reconciliation
    RECONCILE_ATTEMPTS: int = max(1, int(os.environ.get("RECONCILE_ATTEMPTS", "1")))
    ENTITY_LOCKS: bool = _env_bool("ENTITY_LOCKS", True)

    # Application
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()


# Singleton instance
settings = Settings()

if settings.STORAGE_BACKEND not in ("memory", "postgres"):
    raise RuntimeError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND!r}")
if settings.STORAGE_BACKEND == "postgres" and not settings.DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required")
