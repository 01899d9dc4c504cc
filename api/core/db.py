"""
Postgres row store (raw SQL) using asyncpg.

`PostgresStore` owns the connection pool. The FastAPI lifespan opens it on
startup and closes it on shutdown (see `api/main.py`).

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...

Write values arrive as decoded JSON (dates and uuids are plain strings), so
inserts and updates go through `json_populate_record(set)` and let Postgres
coerce each value to its column type.
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Sequence
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

from . import settings
from .errors import StoreError
from .store import Filter, Order, Row

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_OPERATORS = {"eq": "=", "gte": ">=", "lte": "<="}


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return _sanitize_database_url(url)


def quote_ident(name: str) -> str:
    if not _IDENTIFIER.match(name or ""):
        raise StoreError(f"Invalid identifier: {name!r}")
    return f'"{name}"'


def _column_list(columns: Sequence[str]) -> str:
    if not columns or "*" in columns:
        return "*"
    return ", ".join(quote_ident(c) for c in columns)


def build_where(filters: Sequence[Filter], args: list[Any]) -> str:
    """
    Render filters as a WHERE clause, appending bound values to `args`.
    """
    clauses: list[str] = []
    for f in filters:
        column = quote_ident(f.column)
        if f.value is None and f.op == "eq":
            clauses.append(f"{column} IS NULL")
            continue
        args.append(list(f.value) if f.op == "in" else f.value)
        if f.op == "in":
            clauses.append(f"{column} = ANY(${len(args)})")
        else:
            clauses.append(f"{column} {_OPERATORS[f.op]} ${len(args)}")
    if not clauses:
        return ""
    return " WHERE " + " AND ".join(clauses)


def build_select(
    table: str,
    *,
    columns: Sequence[str] = ("*",),
    filters: Sequence[Filter] = (),
    order: Order | None = None,
    limit: int | None = None,
) -> tuple[str, list[Any]]:
    args: list[Any] = []
    sql = f"SELECT {_column_list(columns)} FROM {quote_ident(table)}"
    sql += build_where(filters, args)
    if order is not None:
        direction = "DESC" if order.descending else "ASC"
        sql += f" ORDER BY {quote_ident(order.column)} {direction}"
    if limit is not None:
        args.append(int(limit))
        sql += f" LIMIT ${len(args)}"
    return sql, args


def build_insert(table: str, rows: Sequence[Row]) -> tuple[str, list[Any]]:
    columns: list[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)

    target = quote_ident(table)
    if not columns:
        return f"INSERT INTO {target} DEFAULT VALUES RETURNING *", []

    column_sql = ", ".join(quote_ident(c) for c in columns)
    sql = (
        f"INSERT INTO {target} ({column_sql}) "
        f"SELECT {column_sql} FROM json_populate_recordset(NULL::{target}, $1::json) "
        "RETURNING *"
    )
    return sql, [json.dumps(list(rows), default=str)]


def build_update(table: str, values: Row, filters: Sequence[Filter]) -> tuple[str, list[Any]]:
    if not values:
        raise StoreError("Update requires at least one column.")
    target = quote_ident(table)
    column_sql = ", ".join(quote_ident(c) for c in values)
    args: list[Any] = [json.dumps(values, default=str)]
    sql = (
        f"UPDATE {target} SET ({column_sql}) = "
        f"(SELECT {column_sql} FROM json_populate_record(NULL::{target}, $1::json))"
    )
    sql += build_where(filters, args)
    sql += " RETURNING *"
    return sql, args


def build_delete(table: str, filters: Sequence[Filter]) -> tuple[str, list[Any]]:
    args: list[Any] = []
    sql = f"DELETE FROM {quote_ident(table)}"
    sql += build_where(filters, args)
    sql += " RETURNING *"
    return sql, args


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


class PostgresStore:
    def __init__(
        self,
        dsn: str,
        *,
        min_size: int = 1,
        max_size: int = 5,
        command_timeout: float = 30,
    ) -> None:
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None

    @classmethod
    def from_env(cls) -> "PostgresStore":
        return cls(
            database_url(),
            min_size=settings.pool_min_size(),
            max_size=settings.pool_max_size(),
        )

    async def open(self) -> None:
        if self._pool is not None:
            return None
        self._pool = await asyncpg.create_pool(
            dsn=self._dsn,
            min_size=self._min_size,
            max_size=self._max_size,
            command_timeout=self._command_timeout,
        )

    async def close(self) -> None:
        if self._pool is None:
            return None
        await self._pool.close()
        self._pool = None

    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise StoreError("DB pool is not initialized. Call open() on startup.")
        return self._pool

    async def _fetch(self, sql: str, args: list[Any]) -> list[Row]:
        try:
            rows = await self.pool().fetch(sql, *args)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            raise StoreError(str(exc)) from exc
        return [_record_to_dict(r) for r in rows]

    # `credential` is accepted for port compatibility; the pool authenticates
    # with the DSN.
    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] = ("*",),
        filters: Sequence[Filter] = (),
        order: Order | None = None,
        limit: int | None = None,
        credential: str | None = None,
    ) -> list[Row]:
        sql, args = build_select(table, columns=columns, filters=filters, order=order, limit=limit)
        return await self._fetch(sql, args)

    async def insert(
        self,
        table: str,
        rows: Sequence[Row],
        *,
        credential: str | None = None,
    ) -> list[Row]:
        if not rows:
            return []
        if all(not row for row in rows):
            inserted: list[Row] = []
            for _ in rows:
                sql, args = build_insert(table, [])
                inserted.extend(await self._fetch(sql, args))
            return inserted
        sql, args = build_insert(table, rows)
        return await self._fetch(sql, args)

    async def update(
        self,
        table: str,
        values: Row,
        *,
        filters: Sequence[Filter],
        credential: str | None = None,
    ) -> list[Row]:
        sql, args = build_update(table, values, filters)
        return await self._fetch(sql, args)

    async def delete(
        self,
        table: str,
        *,
        filters: Sequence[Filter],
        credential: str | None = None,
    ) -> list[Row]:
        sql, args = build_delete(table, filters)
        return await self._fetch(sql, args)
