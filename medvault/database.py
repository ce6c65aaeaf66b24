from __future__ import annotations

import logging
import re
import sqlite3
from dataclasses import dataclass
from typing import Sequence
from urllib.parse import urlparse

import aiosqlite

from medvault.config import DATABASE_MAX_CONNECTIONS, DATABASE_PATH, DATABASE_URL

try:  # Optional: only required when DATABASE_URL points at Postgres
    import asyncpg  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    asyncpg = None

logger = logging.getLogger(__name__)

COLLECTIONS = ("users", "patients", "providers", "health_records")


class UniqueViolation(Exception):
    """A write collided with a unique index."""

    def __init__(self, index: str) -> None:
        self.index = index
        super().__init__(f"unique index violated: {index}")


class DatabaseAdapter:
    engine: str

    async def execute(self, query: str, params: Sequence | None = None) -> int:  # pragma: no cover - interface
        """Run a statement and return the number of affected rows."""
        raise NotImplementedError

    async def fetch_one(self, query: str, params: Sequence | None = None):  # pragma: no cover - interface
        raise NotImplementedError

    async def fetch_all(self, query: str, params: Sequence | None = None):  # pragma: no cover - interface
        raise NotImplementedError

    async def commit(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError


_SQLITE_INDEX_RE = re.compile(r"index '([\w]+)'")


@dataclass
class SQLiteAdapter(DatabaseAdapter):
    conn: aiosqlite.Connection
    engine: str = "sqlite"

    async def execute(self, query: str, params: Sequence | None = None) -> int:
        try:
            cursor = await self.conn.execute(query, params or ())
        except sqlite3.IntegrityError as exc:
            match = _SQLITE_INDEX_RE.search(str(exc))
            if match:
                raise UniqueViolation(match.group(1)) from exc
            raise
        return cursor.rowcount

    async def fetch_one(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, params or ())
        return await cursor.fetchone()

    async def fetch_all(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, params or ())
        return await cursor.fetchall()

    async def commit(self) -> None:
        await self.conn.commit()

    async def close(self) -> None:
        await self.conn.close()


@dataclass
class PostgresAdapter(DatabaseAdapter):
    pool: "asyncpg.Pool"  # type: ignore[name-defined]
    engine: str = "postgres"

    @staticmethod
    def _translate_query(query: str) -> str:
        # Convert SQLite-style ? placeholders to asyncpg-style $1, $2, ...
        if "$1" in query:
            return query
        idx = 1
        out = []
        for ch in query:
            if ch == "?":
                out.append(f"${idx}")
                idx += 1
            else:
                out.append(ch)
        return "".join(out)

    async def execute(self, query: str, params: Sequence | None = None) -> int:
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            try:
                status = await conn.execute(q, *(params or ()))
            except asyncpg.UniqueViolationError as exc:
                raise UniqueViolation(exc.constraint_name or "") from exc
        # asyncpg returns a command tag such as "UPDATE 1"
        tail = status.rsplit(" ", 1)[-1]
        return int(tail) if tail.isdigit() else 0

    async def fetch_one(self, query: str, params: Sequence | None = None):
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(q, *(params or ()))

    async def fetch_all(self, query: str, params: Sequence | None = None):
        q = self._translate_query(query)
        async with self.pool.acquire() as conn:
            return await conn.fetch(q, *(params or ()))

    async def commit(self) -> None:
        # asyncpg autocommits per statement unless an explicit transaction is used.
        return

    async def close(self) -> None:
        await self.pool.close()


_db: DatabaseAdapter | None = None


async def get_db() -> DatabaseAdapter:
    global _db
    if _db is None:
        if DATABASE_URL and not DATABASE_URL.startswith("sqlite"):
            if asyncpg is None:
                raise RuntimeError(
                    "DATABASE_URL is set but asyncpg is not installed. "
                    "Install asyncpg or unset DATABASE_URL."
                )
            pool = await asyncpg.create_pool(
                dsn=DATABASE_URL,
                min_size=1,
                max_size=DATABASE_MAX_CONNECTIONS,
            )
            _db = PostgresAdapter(pool)
            logger.info("Connected to Postgres database")
        else:
            sqlite_path = _sqlite_path_from_url(DATABASE_URL) if DATABASE_URL else ""
            sqlite_path = sqlite_path or DATABASE_PATH
            conn = await aiosqlite.connect(sqlite_path)
            conn.row_factory = aiosqlite.Row
            _db = SQLiteAdapter(conn)
            logger.info("Connected to SQLite database at %s", sqlite_path)
    return _db


def _sqlite_path_from_url(url: str) -> str:
    parsed = urlparse(url)
    path = parsed.path or ""
    if not path or path == "/":
        return ""
    # sqlite:////absolute/path.db -> keep absolute path
    if url.startswith("sqlite:////"):
        return path
    # sqlite:///relative.db -> strip leading slash
    if path.startswith("/"):
        return path[1:]
    return path


# Secondary indexes: (name, table, expressions, unique)
INDEXES = [
    ("ux_users_email", "users", ["email"], True),
    ("ux_patients_user", "patients", ["user"], True),
    ("ux_providers_user", "providers", ["user"], True),
    ("ux_providers_license_number", "providers", ["licenseNumber"], True),
    ("ux_providers_npi", "providers", ["npi"], True),
    ("ix_health_records_patient_visit", "health_records", ["patient", "visitDate DESC"], False),
    ("ix_health_records_provider_visit", "health_records", ["provider", "visitDate DESC"], False),
    ("ix_health_records_record_type", "health_records", ["recordType"], False),
]


def _index_column(engine: str, expr: str) -> str:
    field, _, order = expr.partition(" ")
    if engine == "sqlite":
        column = f"json_extract(data, '$.{field}')"
    else:
        column = f"(data->>'{field}')"
    return f"{column} {order}".strip()


def schema_statements(engine: str) -> list[str]:
    data_type = "TEXT" if engine == "sqlite" else "JSONB"
    statements = [
        f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id TEXT PRIMARY KEY,
            data {data_type} NOT NULL,
            created_at TEXT NOT NULL
        )
        """
        for table in COLLECTIONS
    ]
    for name, table, exprs, unique in INDEXES:
        columns = ", ".join(_index_column(engine, e) for e in exprs)
        statements.append(
            f"CREATE {'UNIQUE ' if unique else ''}INDEX IF NOT EXISTS {name} ON {table} ({columns})"
        )
    return statements


async def init_db() -> None:
    db = await get_db()
    for stmt in schema_statements(db.engine):
        await db.execute(stmt)
    await db.commit()


async def close_db() -> None:
    global _db
    if _db is not None:
        await _db.close()
        _db = None
