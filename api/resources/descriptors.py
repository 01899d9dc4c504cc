"""
Static resource configuration.

A `ResourceDescriptor` is the single source of truth for what a resource
exposes: its table, allowed verbs, query filters, related-row expansions and
default sort. Query predicates turn raw query-string values into store
filters and raise `ValidationError` for values they cannot parse.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from core.errors import ValidationError
from core.store import Filter, Order

Query = Mapping[str, str]

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


def parse_bool(raw: str) -> bool:
    value = (raw or "").strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def parse_date(raw: str, *, param: str) -> date:
    value = raw.strip() if isinstance(raw, str) else ""
    if not _ISO_DATE.match(value):
        raise ValidationError(f"{param} must be YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{param} must be YYYY-MM-DD") from exc


@dataclass(frozen=True)
class Equals:
    param: str
    column: str | None = None
    cast: Callable[[str], Any] = str

    @property
    def params(self) -> tuple[str, ...]:
        return (self.param,)

    def apply(self, query: Query, *, today: date) -> list[Filter]:
        raw = query.get(self.param)
        if raw is None:
            return []
        try:
            value = self.cast(raw)
        except ValueError as exc:
            raise ValidationError(f"Invalid value for {self.param}") from exc
        return [Filter(self.column or self.param, "eq", value)]


@dataclass(frozen=True)
class DateRange:
    """Inclusive `start <= column <= end`; either bound may be omitted."""

    column: str
    start: str = "from"
    end: str = "to"

    @property
    def params(self) -> tuple[str, ...]:
        return (self.start, self.end)

    def apply(self, query: Query, *, today: date) -> list[Filter]:
        filters: list[Filter] = []
        if query.get(self.start) is not None:
            filters.append(Filter(self.column, "gte", parse_date(query[self.start], param=self.start)))
        if query.get(self.end) is not None:
            filters.append(Filter(self.column, "lte", parse_date(query[self.end], param=self.end)))
        return filters


@dataclass(frozen=True)
class WithinDays:
    """Rows that occurred in the last N days: `today - N <= column`."""

    column: str
    param: str = "days"

    @property
    def params(self) -> tuple[str, ...]:
        return (self.param,)

    def apply(self, query: Query, *, today: date) -> list[Filter]:
        raw = query.get(self.param)
        if raw is None:
            return []
        try:
            days = int(raw)
        except ValueError as exc:
            raise ValidationError(f"{self.param} must be a non-negative integer") from exc
        if days < 0:
            raise ValidationError(f"{self.param} must be a non-negative integer")
        return [Filter(self.column, "gte", today - timedelta(days=days))]


Predicate = Equals | DateRange | WithinDays


@dataclass(frozen=True)
class IsoDate:
    """Body field must be a `YYYY-MM-DD` date string."""

    field: str

    def check(self, value: Any) -> None:
        parse_date(value, param=self.field)


@dataclass(frozen=True)
class PositiveInt:
    field: str

    def check(self, value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValidationError(f"{self.field} must be > 0")
        try:
            number = int(value)
        except ValueError as exc:
            raise ValidationError(f"{self.field} must be > 0") from exc
        if number <= 0:
            raise ValidationError(f"{self.field} must be > 0")


FieldCheck = IsoDate | PositiveInt


@dataclass(frozen=True)
class Expansion:
    """
    Many-to-one related row nested under `table` in each parent row.

    `local_key` on the parent matches `remote_key` on the related table.
    """

    table: str
    columns: tuple[str, ...]
    local_key: str
    remote_key: str = "id"

    @property
    def select_columns(self) -> tuple[str, ...]:
        if self.remote_key in self.columns:
            return self.columns
        return (self.remote_key, *self.columns)


@dataclass(frozen=True)
class ResourceDescriptor:
    name: str
    table: str
    methods: frozenset[str]
    filters: tuple[Predicate, ...] = ()
    expansions: tuple[Expansion, ...] = ()
    order: Order | None = None
    # Applied only when no query parameter constrains the same column.
    default_filters: tuple[Filter, ...] = ()
    insert_defaults: Mapping[str, Any] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    # Checked on create and update for fields present in the body.
    checks: tuple[FieldCheck, ...] = ()
    key: str = "id"
    # DELETE sets this column to true instead of removing the row.
    soft_delete: str | None = None

    def allows(self, method: str) -> bool:
        return method.upper() in self.methods

    def build_filters(self, query: Query, *, today: date) -> list[Filter]:
        filters: list[Filter] = []
        for predicate in self.filters:
            filters.extend(predicate.apply(query, today=today))
        constrained = {f.column for f in filters}
        filters.extend(f for f in self.default_filters if f.column not in constrained)
        return filters

    def validate(self, body: Mapping[str, Any]) -> None:
        for check in self.checks:
            if check.field in body:
                check.check(body[check.field])

    def writable(self, body: Mapping[str, Any]) -> dict[str, Any]:
        """Strip expansion keys; related rows are never written back."""
        expanded = {e.table for e in self.expansions}
        return {k: v for k, v in body.items() if k not in expanded}
