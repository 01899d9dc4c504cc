"""
Registered resources.

Built once at import time and shared for the life of the process.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from core.store import Filter, Order

from .descriptors import (
    DateRange,
    Equals,
    Expansion,
    IsoDate,
    PositiveInt,
    ResourceDescriptor,
    WithinDays,
    parse_bool,
)

READ_WRITE = frozenset({"GET", "POST", "PATCH", "DELETE"})

PROJECT_SUMMARY = Expansion(
    table="projects",
    columns=("id", "name", "city", "client_name"),
    local_key="project_id",
)

PROJECTS = ResourceDescriptor(
    name="projects",
    table="projects",
    methods=READ_WRITE,
    filters=(
        Equals("status"),
        Equals("client_name"),
        Equals("archived", cast=parse_bool),
    ),
    order=Order("created_at", descending=True),
    default_filters=(Filter("archived", "eq", False),),
    insert_defaults={"archived": False},
    required=("name",),
    soft_delete="archived",
)

TASKS = ResourceDescriptor(
    name="tasks",
    table="tasks",
    methods=READ_WRITE,
    filters=(
        Equals("status"),
        Equals("project_id"),
        Equals("priority"),
    ),
    expansions=(PROJECT_SUMMARY,),
    order=Order("created_at", descending=True),
    required=("title",),
)

TIME_ENTRIES = ResourceDescriptor(
    name="time_entries",
    table="time_entries",
    methods=frozenset({"GET", "POST", "DELETE"}),
    filters=(
        Equals("project_id"),
        Equals("phase_code"),
        WithinDays("occurred_on"),
        DateRange("occurred_on"),
    ),
    expansions=(
        Expansion(
            table="projects",
            columns=("id", "name", "city", "client_name", "default_rate_cents"),
            local_key="project_id",
        ),
        Expansion(table="phases", columns=("code", "name"), local_key="phase_code", remote_key="code"),
    ),
    order=Order("occurred_on", descending=True),
    required=("project_id", "phase_code", "occurred_on", "minutes"),
    checks=(IsoDate("occurred_on"), PositiveInt("minutes")),
)

IDEAS = ResourceDescriptor(
    name="ideas",
    table="ideas",
    methods=READ_WRITE,
    filters=(
        Equals("status"),
        Equals("project_id"),
    ),
    expansions=(Expansion(table="projects", columns=("id", "name"), local_key="project_id"),),
    order=Order("created_at", descending=True),
    required=("title",),
)

PHASES = ResourceDescriptor(
    name="phases",
    table="phases",
    methods=frozenset({"GET"}),
    order=Order("sort_order"),
    key="code",
)


def build_registry(descriptors: Iterable[ResourceDescriptor]) -> Mapping[str, ResourceDescriptor]:
    registry: dict[str, ResourceDescriptor] = {}
    for descriptor in descriptors:
        if descriptor.name in registry:
            raise ValueError(f"Duplicate resource: {descriptor.name}")
        registry[descriptor.name] = descriptor
    return MappingProxyType(registry)


REGISTRY = build_registry([PROJECTS, TASKS, TIME_ENTRIES, IDEAS, PHASES])
