"""
Resource gateway.

Translates one request into exactly one store operation (plus read-only
expansion lookups) and returns `(status_code, payload)`. Method checks and
body validation short-circuit before the store is touched; store failures
are converted to `StoreError` once, here.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from datetime import date
from typing import Any, TypeVar

from core.errors import NotAllowedError, NotFoundError, StoreError, ValidationError
from core.store import Filter, Row, RowStore

from .descriptors import Query, ResourceDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")

COLLECTION_METHODS = frozenset({"GET", "POST"})
ITEM_METHODS = frozenset({"GET", "PATCH", "DELETE"})

Result = tuple[int, Any]


def method_not_allowed() -> NotAllowedError:
    return NotAllowedError("Method not allowed")


def _require_object(body: Any) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


class ResourceGateway:
    def __init__(
        self,
        store: RowStore,
        descriptors: Mapping[str, ResourceDescriptor],
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._descriptors = descriptors
        self._today = today

    @property
    def store(self) -> RowStore:
        return self._store

    def descriptor(self, name: str) -> ResourceDescriptor:
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            raise NotFoundError("Not found")
        return descriptor

    def check_method(self, method: str, resource: str, *, item: bool = False) -> ResourceDescriptor:
        """
        Resolve the resource and reject verbs it does not allow on this path shape.

        Runs before any body parsing or store access.
        """
        descriptor = self.descriptor(resource)
        allowed_here = ITEM_METHODS if item else COLLECTION_METHODS
        if method.upper() not in allowed_here or not descriptor.allows(method):
            raise method_not_allowed()
        return descriptor

    async def handle(
        self,
        method: str,
        resource: str,
        *,
        row_id: str | None = None,
        query: Query | None = None,
        body: Any = None,
        credential: str | None = None,
    ) -> Result:
        descriptor = self.check_method(method, resource, item=row_id is not None)
        method = method.upper()

        if row_id is None:
            if method == "GET":
                return 200, await self.list(descriptor, query or {}, credential=credential)
            return 201, await self.create(descriptor, body, credential=credential)

        if method == "GET":
            return 200, await self.retrieve(descriptor, row_id, credential=credential)
        if method == "PATCH":
            return 200, await self.update(descriptor, row_id, body, credential=credential)
        return await self.delete(descriptor, row_id, credential=credential)

    async def _call(self, descriptor: ResourceDescriptor, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await fn()
        except StoreError:
            logger.exception("store_error resource=%s operation=%s", descriptor.name, operation)
            raise
        except Exception as exc:
            logger.exception("store_error resource=%s operation=%s", descriptor.name, operation)
            raise StoreError(str(exc) or exc.__class__.__name__) from exc

    async def _expand(
        self,
        descriptor: ResourceDescriptor,
        rows: list[Row],
        *,
        credential: str | None,
    ) -> list[Row]:
        rows = [dict(row) for row in rows]
        for expansion in descriptor.expansions:
            values = (row.get(expansion.local_key) for row in rows)
            keys = list(dict.fromkeys(v for v in values if v is not None))

            related: dict[Any, Row] = {}
            if keys:
                found = await self._call(
                    descriptor,
                    f"expand:{expansion.table}",
                    lambda: self._store.select(
                        expansion.table,
                        columns=expansion.select_columns,
                        filters=[Filter(expansion.remote_key, "in", keys)],
                        credential=credential,
                    ),
                )
                related = {r.get(expansion.remote_key): r for r in found}

            for row in rows:
                row[expansion.table] = related.get(row.get(expansion.local_key))
        return rows

    async def list(
        self,
        descriptor: ResourceDescriptor,
        query: Query,
        *,
        credential: str | None = None,
    ) -> list[Row]:
        filters = descriptor.build_filters(query, today=self._today())
        rows = await self._call(
            descriptor,
            "list",
            lambda: self._store.select(
                descriptor.table,
                filters=filters,
                order=descriptor.order,
                credential=credential,
            ),
        )
        return await self._expand(descriptor, rows or [], credential=credential)

    async def create(
        self,
        descriptor: ResourceDescriptor,
        body: Any,
        *,
        credential: str | None = None,
    ) -> Row:
        payload = descriptor.writable(_require_object(body))
        for name in descriptor.required:
            if payload.get(name) in (None, ""):
                raise ValidationError(f"{name} is required")
        descriptor.validate(payload)

        row = {**descriptor.insert_defaults, **payload}
        inserted = await self._call(
            descriptor,
            "create",
            lambda: self._store.insert(descriptor.table, [row], credential=credential),
        )
        if not inserted:
            raise StoreError(f"Insert into {descriptor.table} returned no row")

        logger.info("row_created resource=%s id=%s", descriptor.name, inserted[0].get("id"))
        expanded = await self._expand(descriptor, inserted[:1], credential=credential)
        return expanded[0]

    async def retrieve(
        self,
        descriptor: ResourceDescriptor,
        row_id: str,
        *,
        credential: str | None = None,
    ) -> Row:
        rows = await self._call(
            descriptor,
            "retrieve",
            lambda: self._store.select(
                descriptor.table,
                filters=[Filter(descriptor.key, "eq", row_id)],
                limit=1,
                credential=credential,
            ),
        )
        if not rows:
            raise NotFoundError("Not found")
        expanded = await self._expand(descriptor, rows[:1], credential=credential)
        return expanded[0]

    async def update(
        self,
        descriptor: ResourceDescriptor,
        row_id: str,
        body: Any,
        *,
        credential: str | None = None,
    ) -> Row:
        values = descriptor.writable(_require_object(body))
        values.pop(descriptor.key, None)
        if not values:
            raise ValidationError("Request body has no updatable fields")
        descriptor.validate(values)

        rows = await self._call(
            descriptor,
            "update",
            lambda: self._store.update(
                descriptor.table,
                values,
                filters=[Filter(descriptor.key, "eq", row_id)],
                credential=credential,
            ),
        )
        if not rows:
            raise NotFoundError("Not found")
        expanded = await self._expand(descriptor, rows[:1], credential=credential)
        return expanded[0]

    async def delete(
        self,
        descriptor: ResourceDescriptor,
        row_id: str,
        *,
        credential: str | None = None,
    ) -> Result:
        filters = [Filter(descriptor.key, "eq", row_id)]
        if descriptor.soft_delete:
            column = descriptor.soft_delete
            rows = await self._call(
                descriptor,
                "archive",
                lambda: self._store.update(
                    descriptor.table,
                    {column: True},
                    filters=filters,
                    credential=credential,
                ),
            )
            if not rows:
                raise NotFoundError("Not found")
            logger.info("row_archived resource=%s id=%s", descriptor.name, row_id)
            return 200, {"ok": True, descriptor.key: rows[0].get(descriptor.key, row_id), column: True}

        rows = await self._call(
            descriptor,
            "delete",
            lambda: self._store.delete(descriptor.table, filters=filters, credential=credential),
        )
        if not rows:
            raise NotFoundError("Not found")
        logger.info("row_deleted resource=%s id=%s", descriptor.name, row_id)
        return 204, None
