"""
Shared fixtures: an in-memory row store implementing the store port and a
TestClient factory wired to it.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from core.store import Filter, Order, Row
from main import create_app
from resources.registry import REGISTRY
from resources.service import ResourceGateway

FIXED_TODAY = date(2024, 5, 10)


def _norm(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


def _matches(row: Row, f: Filter) -> bool:
    actual = _norm(row.get(f.column))
    if f.op == "in":
        return actual in {_norm(v) for v in f.value}
    expected = _norm(f.value)
    if f.op == "eq":
        return actual == expected
    if actual is None:
        return False
    if f.op == "gte":
        return actual >= expected
    return actual <= expected


class MemoryStore:
    """Fake store port that records every call."""

    def __init__(self, tables: dict[str, list[Row]] | None = None) -> None:
        self.tables: dict[str, list[Row]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self.calls: list[tuple[str, str, str | None]] = []
        self.fail_with: Exception | None = None
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    def _record(self, op: str, table: str, credential: str | None) -> list[Row]:
        self.calls.append((op, table, credential))
        if self.fail_with is not None:
            raise self.fail_with
        return self.tables.setdefault(table, [])

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
        rows = [r for r in self._record("select", table, credential) if all(_matches(r, f) for f in filters)]
        if order is not None:
            rows.sort(
                key=lambda r: (r.get(order.column) is None, _norm(r.get(order.column))),
                reverse=order.descending,
            )
        if limit is not None:
            rows = rows[:limit]
        if "*" in columns:
            return [dict(r) for r in rows]
        return [{c: r.get(c) for c in columns} for r in rows]

    async def insert(self, table: str, rows: Sequence[Row], *, credential: str | None = None) -> list[Row]:
        target = self._record("insert", table, credential)
        inserted = []
        for row in rows:
            created = {
                "id": str(uuid4()),
                "created_at": datetime.now(timezone.utc).isoformat(),
                **row,
            }
            target.append(created)
            inserted.append(dict(created))
        return inserted

    async def update(
        self,
        table: str,
        values: Row,
        *,
        filters: Sequence[Filter],
        credential: str | None = None,
    ) -> list[Row]:
        updated = []
        for row in self._record("update", table, credential):
            if all(_matches(row, f) for f in filters):
                row.update(values)
                updated.append(dict(row))
        return updated

    async def delete(self, table: str, *, filters: Sequence[Filter], credential: str | None = None) -> list[Row]:
        target = self._record("delete", table, credential)
        removed = [r for r in target if all(_matches(r, f) for f in filters)]
        self.tables[table] = [r for r in target if r not in removed]
        return removed


PROJECT_A = {
    "id": "p-1",
    "name": "Villa Waterfront",
    "city": "Utrecht",
    "client_name": "Jansen",
    "default_rate_cents": 8500,
    "status": "active",
    "archived": False,
    "created_at": "2024-01-01T09:00:00+00:00",
}
PROJECT_B = {
    "id": "p-2",
    "name": "Kantoorgebouw",
    "city": "Delft",
    "client_name": "De Vries",
    "default_rate_cents": 9500,
    "status": "active",
    "archived": False,
    "created_at": "2024-02-01T09:00:00+00:00",
}
PROJECT_ARCHIVED = {
    "id": "p-3",
    "name": "Oud project",
    "city": "Leiden",
    "client_name": "Bakker",
    "default_rate_cents": 7500,
    "status": "done",
    "archived": True,
    "created_at": "2023-06-01T09:00:00+00:00",
}


@pytest.fixture
def seed() -> dict[str, list[Row]]:
    return {
        "projects": [PROJECT_A, PROJECT_B, PROJECT_ARCHIVED],
        "tasks": [
            {"id": "t-1", "title": "Schets maken", "status": "done", "project_id": "p-1",
             "priority": "high", "created_at": "2024-03-01T10:00:00+00:00"},
            {"id": "t-2", "title": "Offerte sturen", "status": "todo", "project_id": "p-2",
             "priority": "low", "created_at": "2024-03-02T10:00:00+00:00"},
            {"id": "t-3", "title": "Archief opruimen", "status": "done", "project_id": None,
             "priority": "low", "created_at": "2024-03-03T10:00:00+00:00"},
        ],
        "time_entries": [
            {"id": "e-1", "project_id": "p-1", "phase_code": "schetsontwerp", "occurred_on": "2024-05-09",
             "minutes": 90, "created_at": "2024-05-09T17:00:00+00:00"},
            {"id": "e-2", "project_id": "p-1", "phase_code": "uitvoering", "occurred_on": "2024-04-01",
             "minutes": 60, "created_at": "2024-04-01T17:00:00+00:00"},
            {"id": "e-3", "project_id": "p-2", "phase_code": "schetsontwerp", "occurred_on": "2024-05-03",
             "minutes": 30, "created_at": "2024-05-03T17:00:00+00:00"},
        ],
        "phases": [
            {"code": "uitvoering", "name": "Uitvoering", "sort_order": 8},
            {"code": "schetsontwerp", "name": "Schetsontwerp", "sort_order": 1},
        ],
        "ideas": [],
    }


@pytest.fixture
def store(seed) -> MemoryStore:
    return MemoryStore(seed)


@pytest.fixture
def client(store):
    gateway = ResourceGateway(store, REGISTRY, today=lambda: FIXED_TODAY)
    app = create_app(gateway=gateway)
    with TestClient(app) as test_client:
        yield test_client
