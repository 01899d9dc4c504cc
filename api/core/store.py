"""
Row-store port.

The gateway only needs four table operations. Adapters (`core/db.py` for a
direct Postgres pool, `core/rest.py` for a hosted PostgREST endpoint) implement
this protocol and raise `StoreError` for every backend failure.

Filter operators:
- eq   column = value
- gte  column >= value
- lte  column <= value
- in   column in (values...)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

Row = dict[str, Any]

FILTER_OPS = ("eq", "gte", "lte", "in")


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter operator: {self.op}")


@dataclass(frozen=True)
class Order:
    column: str
    descending: bool = False


class RowStore(Protocol):
    async def open(self) -> None: ...

    async def close(self) -> None: ...

    async def select(
        self,
        table: str,
        *,
        columns: Sequence[str] = ("*",),
        filters: Sequence[Filter] = (),
        order: Order | None = None,
        limit: int | None = None,
        credential: str | None = None,
    ) -> list[Row]: ...

    async def insert(
        self,
        table: str,
        rows: Sequence[Row],
        *,
        credential: str | None = None,
    ) -> list[Row]: ...

    async def update(
        self,
        table: str,
        values: Row,
        *,
        filters: Sequence[Filter],
        credential: str | None = None,
    ) -> list[Row]: ...

    async def delete(
        self,
        table: str,
        *,
        filters: Sequence[Filter],
        credential: str | None = None,
    ) -> list[Row]: ...
