"""Document collections on top of the SQL adapters.

Each collection is a table of ``(id, data, created_at)`` rows where ``data``
is the JSON document. Filters use a small Mongo-style vocabulary::

    {"patient": "p-1", "visitDate": {"$gte": dt, "$lte": dt}}
    {"specialty": {"$icontains": "cardio"}}
    {"id": {"$in": ["a", "b"]}}

Values are compared against the stored JSON scalars, so datetimes are
normalised with ``format_timestamp`` before binding.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from datetime import datetime
from typing import Any

from medvault.database import INDEXES, DatabaseAdapter, UniqueViolation, get_db
from medvault.errors import DuplicateError, ValidationError
from medvault.models.common import format_timestamp, utcnow

logger = logging.getLogger(__name__)

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_INDEX_FIELDS = {name: exprs[0].split(" ")[0] for name, _, exprs, _ in INDEXES}

DESCENDING = -1


def _check_field(name: str) -> str:
    if not _FIELD_RE.match(name):
        raise ValidationError(f"Invalid field name: {name}")
    return name


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class Dialect:
    """SQL fragments that differ between SQLite JSON1 and Postgres JSONB."""

    def __init__(self, engine: str) -> None:
        self.engine = engine

    @property
    def is_sqlite(self) -> bool:
        return self.engine == "sqlite"

    def field(self, name: str) -> str:
        name = _check_field(name)
        if name == "id":
            return "id"
        if self.is_sqlite:
            return f"json_extract(data, '$.{name}')"
        return f"(data->>'{name}')"

    def value(self, value: Any) -> Any:
        if isinstance(value, datetime):
            value = format_timestamp(value)
        if self.is_sqlite:
            return value
        # ->> yields text, so compare against the JSON text rendering
        if isinstance(value, bool):
            return "true" if value else "false"
        return None if value is None else str(value)

    @property
    def json_param(self) -> str:
        return "?" if self.is_sqlite else "?::jsonb"

    def like(self, expr: str) -> str:
        op = "LIKE" if self.is_sqlite else "ILIKE"
        return f"{expr} {op} ? ESCAPE '\\'"

    def set_fields(self, fields: dict) -> tuple[str, list]:
        if self.is_sqlite:
            parts, params = [], []
            for key, val in fields.items():
                parts.append(f"'$.{_check_field(key)}', json(?)")
                params.append(json.dumps(val))
            return f"json_set(data, {', '.join(parts)})", params
        for key in fields:
            _check_field(key)
        return "data || ?::jsonb", [json.dumps(fields)]

    def push(self, field: str, value: Any) -> tuple[str, list]:
        field = _check_field(field)
        if self.is_sqlite:
            expr = (
                f"json_set(data, '$.{field}', json_insert("
                f"COALESCE(json_extract(data, '$.{field}'), json('[]')), '$[#]', json(?)))"
            )
        else:
            expr = (
                f"jsonb_set(data, '{{{field}}}', "
                f"COALESCE(data->'{field}', '[]'::jsonb) || jsonb_build_array(?::jsonb))"
            )
        return expr, [json.dumps(value)]

    def not_contains(self, table: str, field: str, value: Any) -> tuple[str, list]:
        """Condition that the array ``field`` does not already hold ``value``."""
        field = _check_field(field)
        if self.is_sqlite:
            return (
                f"NOT EXISTS (SELECT 1 FROM json_each({table}.data, '$.{field}') WHERE json_each.value = ?)",
                [value],
            )
        return (
            f"NOT (COALESCE(data->'{field}', '[]'::jsonb) @> jsonb_build_array(?::jsonb))",
            [json.dumps(value)],
        )


def build_where(dialect: Dialect, filter: dict | None) -> tuple[str, list]:
    if not filter:
        return "", []
    clauses: list[str] = []
    params: list = []
    for name, cond in filter.items():
        expr = dialect.field(name)
        if isinstance(cond, dict):
            for op, operand in cond.items():
                if op == "$gte":
                    clauses.append(f"{expr} >= ?")
                    params.append(dialect.value(operand))
                elif op == "$lte":
                    clauses.append(f"{expr} <= ?")
                    params.append(dialect.value(operand))
                elif op == "$in":
                    values = list(operand)
                    if not values:
                        clauses.append("0 = 1")
                        continue
                    clauses.append(f"{expr} IN ({', '.join('?' for _ in values)})")
                    params.extend(dialect.value(v) for v in values)
                elif op == "$icontains":
                    clauses.append(dialect.like(expr))
                    params.append(f"%{_escape_like(str(operand))}%")
                else:
                    raise ValidationError(f"Unsupported filter operator: {op}")
        elif cond is None:
            clauses.append(f"{expr} IS NULL")
        else:
            clauses.append(f"{expr} = ?")
            params.append(dialect.value(cond))
    return " WHERE " + " AND ".join(clauses), params


def _load(raw: Any) -> dict:
    if isinstance(raw, (str, bytes)):
        return json.loads(raw)
    return dict(raw)


class Collection:
    def __init__(self, db: DatabaseAdapter, name: str) -> None:
        self.db = db
        self.name = name
        self.dialect = Dialect(db.engine)

    def _duplicate(self, exc: UniqueViolation) -> DuplicateError:
        field = _INDEX_FIELDS.get(exc.index, exc.index or "field")
        logger.info("Duplicate %s rejected in %s", field, self.name)
        return DuplicateError(f"Duplicate value entered for {field}")

    async def insert_one(self, document: dict) -> dict:
        doc = dict(document)
        doc.setdefault("id", str(uuid.uuid4()))
        now = format_timestamp(utcnow())
        doc.setdefault("createdAt", now)
        doc.setdefault("updatedAt", now)
        try:
            await self.db.execute(
                f"INSERT INTO {self.name} (id, data, created_at) VALUES (?, {self.dialect.json_param}, ?)",
                (doc["id"], json.dumps(doc), doc["createdAt"]),
            )
        except UniqueViolation as exc:
            raise self._duplicate(exc) from None
        await self.db.commit()
        return doc

    async def find_by_id(self, doc_id: str) -> dict | None:
        row = await self.db.fetch_one(f"SELECT data FROM {self.name} WHERE id = ?", (doc_id,))
        return _load(row["data"]) if row else None

    async def find_one(self, filter: dict) -> dict | None:
        where, params = build_where(self.dialect, filter)
        row = await self.db.fetch_one(
            f"SELECT data FROM {self.name}{where} ORDER BY created_at ASC LIMIT 1", params
        )
        return _load(row["data"]) if row else None

    async def find(
        self,
        filter: dict | None = None,
        sort: list[tuple[str, int]] | None = None,
    ) -> list[dict]:
        where, params = build_where(self.dialect, filter)
        order = [
            f"{self.dialect.field(name)} {'DESC' if direction == DESCENDING else 'ASC'}"
            for name, direction in (sort or [])
        ]
        order.append("created_at ASC")
        query = f"SELECT data FROM {self.name}{where} ORDER BY {', '.join(order)}"
        rows = await self.db.fetch_all(query, params)
        return [_load(row["data"]) for row in rows]

    async def set_fields(self, doc_id: str, fields: dict) -> dict | None:
        """Replace top-level fields of one document; returns the updated document."""
        if not fields:
            return await self.find_by_id(doc_id)
        expr, params = self.dialect.set_fields(fields)
        try:
            changed = await self.db.execute(
                f"UPDATE {self.name} SET data = {expr} WHERE id = ?", (*params, doc_id)
            )
        except UniqueViolation as exc:
            raise self._duplicate(exc) from None
        await self.db.commit()
        if not changed:
            return None
        return await self.find_by_id(doc_id)

    async def push(self, doc_id: str, field: str, value: Any) -> dict | None:
        """Atomically append ``value`` to the array ``field``."""
        expr, params = self.dialect.push(field, value)
        changed = await self.db.execute(
            f"UPDATE {self.name} SET data = {expr} WHERE id = ?", (*params, doc_id)
        )
        await self.db.commit()
        if not changed:
            return None
        return await self.find_by_id(doc_id)

    async def push_unique(self, doc_id: str, field: str, value: Any) -> dict | None:
        """Append a scalar ``value`` to ``field`` unless it is already present.

        Check and append run as one UPDATE. Returns None when nothing changed,
        either because the document is missing or the value was already there.
        """
        expr, params = self.dialect.push(field, value)
        cond, cond_params = self.dialect.not_contains(self.name, field, value)
        changed = await self.db.execute(
            f"UPDATE {self.name} SET data = {expr} WHERE id = ? AND {cond}",
            (*params, doc_id, *cond_params),
        )
        await self.db.commit()
        if not changed:
            return None
        return await self.find_by_id(doc_id)

    async def delete_one(self, doc_id: str) -> dict | None:
        doc = await self.find_by_id(doc_id)
        if doc is None:
            return None
        await self.db.execute(f"DELETE FROM {self.name} WHERE id = ?", (doc_id,))
        await self.db.commit()
        return doc


class Datastore:
    """The four document collections backing the API."""

    def __init__(self, db: DatabaseAdapter) -> None:
        self.db = db
        self.users = Collection(db, "users")
        self.patients = Collection(db, "patients")
        self.providers = Collection(db, "providers")
        self.health_records = Collection(db, "health_records")

    async def ping(self) -> bool:
        row = await self.db.fetch_one("SELECT 1 AS ok")
        return bool(row and row["ok"] == 1)


async def get_datastore() -> Datastore:
    return Datastore(await get_db())
