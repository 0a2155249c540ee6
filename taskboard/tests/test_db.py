"""Tests for the asyncpg pool lifecycle; asyncpg itself is mocked out."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from taskboard import config, db


@pytest.fixture(autouse=True)
def reset_pool():
    db.pool = None
    yield
    db.pool = None


async def test_init_pool_uses_settings():
    """The pool is sized from settings and registers no custom type codecs."""
    fake_pool = AsyncMock()
    with patch("taskboard.db.asyncpg.create_pool", AsyncMock(return_value=fake_pool)) as create_pool:
        pool = await db.init_pool("postgresql://localhost/taskboard")

    assert pool is fake_pool
    assert db.pool is fake_pool
    kwargs = create_pool.await_args.kwargs
    assert kwargs["dsn"] == "postgresql://localhost/taskboard"
    assert kwargs["min_size"] == config.settings.DB_POOL_MIN_SIZE
    assert kwargs["max_size"] == config.settings.DB_POOL_MAX_SIZE
    assert "init" not in kwargs


async def test_close_pool_resets_global():
    fake_pool = AsyncMock()
    db.pool = fake_pool
    await db.close_pool()
    fake_pool.close.assert_awaited_once()
    assert db.pool is None


async def test_close_pool_without_pool_is_a_no_op():
    await db.close_pool()
    assert db.pool is None


async def test_connection_requires_pool():
    with pytest.raises(RuntimeError, match="not initialized"):
        async with db.connection():
            pass
