"""Shared fixtures. Settings are validated at import time, so the required
environment is populated before anything from skilltrack is imported."""

import os

os.environ.setdefault("JWT_SECRET", "test-jwt-secret-that-is-long-enough-0123456789")
os.environ.setdefault("API_KEY", "test-api-key")

from datetime import datetime, timezone

import aiosqlite
import pytest

# Tuesday afternoon, UTC
NOW = datetime(2026, 3, 10, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
async def db():
    """In-memory database with the full schema."""
    from skilltrack.db.database import SCHEMA_PATH

    conn = await aiosqlite.connect(":memory:")
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA foreign_keys = ON")
    await conn.executescript(SCHEMA_PATH.read_text())
    await conn.commit()
    yield conn
    await conn.close()


@pytest.fixture
async def user_id(db, now):
    from skilltrack.db import store

    return await store.create_user(db, "ada", "ada@example.com", now, full_name="Ada Lovelace")


@pytest.fixture(autouse=True)
def _fresh_user_locks():
    """Per-user locks bind to the loop that first contends them; each test gets a new loop."""
    from skilltrack.services import tracker

    tracker._user_locks.clear()
    tracker._lock_users.clear()
    yield
    tracker._user_locks.clear()
    tracker._lock_users.clear()
