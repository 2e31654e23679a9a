"""Connection handling for the store.

SQLite through aiosqlite is the default (DATABASE_PATH). When DATABASE_URL
is a postgresql:// URL, connections come from an asyncpg pool, wrapped in
PgConnection so the store can make the same calls it makes on aiosqlite:
execute() with "?" placeholders, commit(), and cursors exposing
fetchone() / fetchall() / lastrowid with rows addressable by column name.
"""

import asyncio
import itertools
import logging
import re
from collections.abc import AsyncGenerator
from datetime import date, datetime, timezone
from pathlib import Path

from alembic import command
from alembic.config import Config

from skilltrack.config import settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

PG_POOL_MIN = 2
PG_POOL_MAX = 10


def _is_postgres() -> bool:
    return settings.database_url.startswith("postgresql://")


# ── SQLite ────────────────────────────────────────────────────────────

async def connect_sqlite(path: str):
    import aiosqlite

    db = await aiosqlite.connect(path)
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA foreign_keys = ON")
    return db


# ── PostgreSQL ────────────────────────────────────────────────────────

_pg_pool = None

# Quoted literals are matched first so a "?" inside them is left alone
_PLACEHOLDER_RE = re.compile(r"'(?:[^']|'')*'|\?")
_TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}")


async def _get_pg_pool():
    global _pg_pool
    if _pg_pool is None:
        import asyncpg

        _pg_pool = await asyncpg.create_pool(
            settings.database_url, min_size=PG_POOL_MIN, max_size=PG_POOL_MAX,
        )
    return _pg_pool


def to_pg_sql(sql: str) -> str:
    """Rewrite "?" placeholders as $1, $2, ..."""
    numbers = itertools.count(1)

    def _number(match):
        token = match.group(0)
        return f"${next(numbers)}" if token == "?" else token

    return _PLACEHOLDER_RE.sub(_number, sql)


def _pg_param(value):
    """Timestamps are written as ISO strings; TIMESTAMP columns want naive UTC datetimes."""
    if isinstance(value, str) and _TIMESTAMP_RE.match(value):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return value
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    return value


def _row_dict(record) -> dict:
    # Datetimes go back out as ISO strings, the shape SQLite hands the store
    return {
        key: value.isoformat() if isinstance(value, (datetime, date)) else value
        for key, value in record.items()
    }


class PgCursor:

    def __init__(self, records=(), lastrowid=None):
        self._rows = iter([_row_dict(r) for r in records])
        self.lastrowid = lastrowid

    async def fetchone(self):
        return next(self._rows, None)

    async def fetchall(self):
        return list(self._rows)


class PgConnection:
    """asyncpg connection behind the aiosqlite calls the store makes."""

    def __init__(self, conn):
        self._conn = conn

    async def execute(self, sql: str, params=()):
        query = to_pg_sql(sql)
        args = [_pg_param(p) for p in params or ()]
        verb = query.lstrip().split(None, 1)[0].upper()
        returns_rows = "RETURNING" in query.upper()

        if verb == "INSERT":
            if not returns_rows:
                query = f"{query.rstrip().rstrip(';')} RETURNING id"
            record = await self._conn.fetchrow(query, *args)
            return PgCursor([record] if record else [], record["id"] if record else None)
        if verb in ("SELECT", "WITH") or returns_rows:
            return PgCursor(await self._conn.fetch(query, *args))

        await self._conn.execute(query, *args)
        return PgCursor()

    async def commit(self):
        # Statements outside an explicit transaction are already committed
        pass

    async def close(self):
        # The pool owns the connection; get_db() releases it
        pass


# ── Lifecycle ─────────────────────────────────────────────────────────

async def get_db() -> AsyncGenerator:
    """FastAPI dependency: one connection per request."""
    if _is_postgres():
        pool = await _get_pg_pool()
        async with pool.acquire() as conn:
            yield PgConnection(conn)
        return

    db = await connect_sqlite(settings.database_path)
    try:
        yield db
    finally:
        await db.close()


def _alembic_config() -> Config:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    cfg.set_main_option(
        "sqlalchemy.url",
        settings.database_url if _is_postgres() else f"sqlite:///{settings.database_path}",
    )
    # The app has already configured logging
    cfg.attributes["configure_logger"] = False
    return cfg


async def init_db():
    """Upgrade the schema to head. Alembic is synchronous, so it runs in a worker thread."""
    if _is_postgres():
        logger.info("Database: PostgreSQL at %s", settings.database_url.rsplit("@", 1)[-1])
    else:
        Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
        logger.info("Database: SQLite file %s", settings.database_path)

    await asyncio.to_thread(command.upgrade, _alembic_config(), "head")


async def close_db():
    global _pg_pool
    if _pg_pool is not None:
        await _pg_pool.close()
        _pg_pool = None
