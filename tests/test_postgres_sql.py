"""
SQL rendering for the asyncpg store.
"""

from __future__ import annotations

import json
from datetime import date

import pytest

from core.db import (
    PostgresStore,
    _sanitize_database_url,
    build_delete,
    build_insert,
    build_select,
    build_update,
    quote_ident,
)
from core.errors import StoreError
from core.store import Filter, Order


class TestSelect:
    def test_plain_select(self):
        assert build_select("tasks") == ('SELECT * FROM "tasks"', [])

    def test_filters_order_and_limit(self):
        sql, args = build_select(
            "time_entries",
            columns=("id", "minutes"),
            filters=[
                Filter("project_id", "eq", "p-1"),
                Filter("occurred_on", "gte", date(2024, 5, 1)),
                Filter("occurred_on", "lte", date(2024, 5, 31)),
            ],
            order=Order("occurred_on", descending=True),
            limit=10,
        )

        assert sql == (
            'SELECT "id", "minutes" FROM "time_entries"'
            ' WHERE "project_id" = $1 AND "occurred_on" >= $2 AND "occurred_on" <= $3'
            ' ORDER BY "occurred_on" DESC LIMIT $4'
        )
        assert args == ["p-1", date(2024, 5, 1), date(2024, 5, 31), 10]

    def test_in_filter_binds_array(self):
        sql, args = build_select("projects", filters=[Filter("id", "in", ("p-1", "p-2"))])

        assert sql == 'SELECT * FROM "projects" WHERE "id" = ANY($1)'
        assert args == [["p-1", "p-2"]]

    def test_null_equality(self):
        sql, args = build_select("tasks", filters=[Filter("project_id", "eq", None)])

        assert sql == 'SELECT * FROM "tasks" WHERE "project_id" IS NULL'
        assert args == []

    def test_identifiers_are_validated(self):
        with pytest.raises(StoreError):
            build_select('tasks"; DROP TABLE tasks; --')
        with pytest.raises(StoreError):
            quote_ident("")


class TestWrites:
    def test_insert_uses_json_recordset(self):
        sql, args = build_insert("projects", [{"name": "Demo", "archived": False}])

        assert sql == (
            'INSERT INTO "projects" ("name", "archived") '
            'SELECT "name", "archived" FROM json_populate_recordset(NULL::"projects", $1::json) '
            "RETURNING *"
        )
        assert json.loads(args[0]) == [{"name": "Demo", "archived": False}]

    def test_insert_column_union(self):
        sql, _ = build_insert("tasks", [{"title": "a"}, {"title": "b", "status": "done"}])

        assert '("title", "status")' in sql

    def test_insert_without_columns_uses_defaults(self):
        assert build_insert("ideas", []) == ('INSERT INTO "ideas" DEFAULT VALUES RETURNING *', [])

    def test_update(self):
        sql, args = build_update("tasks", {"status": "done"}, [Filter("id", "eq", "t-1")])

        assert sql == (
            'UPDATE "tasks" SET ("status") = '
            '(SELECT "status" FROM json_populate_record(NULL::"tasks", $1::json))'
            ' WHERE "id" = $2 RETURNING *'
        )
        assert json.loads(args[0]) == {"status": "done"}
        assert args[1] == "t-1"

    def test_update_requires_values(self):
        with pytest.raises(StoreError):
            build_update("tasks", {}, [Filter("id", "eq", "t-1")])

    def test_delete(self):
        assert build_delete("tasks", [Filter("id", "eq", "t-1")]) == (
            'DELETE FROM "tasks" WHERE "id" = $1 RETURNING *',
            ["t-1"],
        )


def test_sslmode_is_stripped_from_dsn():
    url = "postgresql://u:p@db.example:5432/app?sslmode=require&application_name=workboard"

    assert _sanitize_database_url(url) == "postgresql://u:p@db.example:5432/app?application_name=workboard"


@pytest.mark.asyncio
async def test_unopened_pool_raises_store_error():
    store = PostgresStore("postgresql://localhost/app")

    with pytest.raises(StoreError, match="not initialized"):
        await store.select("tasks")
