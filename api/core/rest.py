"""
Hosted Postgres row store over its PostgREST HTTP surface.

Used endpoints (relative to `<base_url>/rest/v1`):
- GET    /<table>?select=...&<col>=<op>.<value>&order=<col>.<dir>&limit=N
- POST   /<table>                      body: [row, ...]
- PATCH  /<table>?<col>=<op>.<value>   body: {col: value}
- DELETE /<table>?<col>=<op>.<value>

Writes send `Prefer: return=representation` so the affected rows come back.
The caller's bearer credential is forwarded as-is; without one the service
key is used.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

import httpx

from . import settings
from .errors import StoreError
from .store import Filter, Order, Row

REST_PATH = "/rest/v1"


def _normalize_base_url(base_url: str) -> str:
    base_url = (base_url or "").strip()
    if not base_url:
        raise StoreError("Store base URL is empty.")
    return base_url.rstrip("/") + REST_PATH


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _format_in(values: Sequence[Any]) -> str:
    items = []
    for value in values:
        text = _format_value(value)
        # Reserved characters must be quoted inside in.(...) lists.
        if any(ch in text for ch in ',()"'):
            text = '"' + text.replace('"', '\\"') + '"'
        items.append(text)
    return "in.(" + ",".join(items) + ")"


def build_params(
    *,
    columns: Sequence[str] | None = None,
    filters: Sequence[Filter] = (),
    order: Order | None = None,
    limit: int | None = None,
) -> list[tuple[str, str]]:
    """
    Translate port arguments into PostgREST query parameters.

    A list of pairs is returned because the same column may carry two filters
    (e.g. a date range).
    """
    params: list[tuple[str, str]] = []
    if columns is not None:
        params.append(("select", ",".join(columns) if columns else "*"))
    for f in filters:
        if f.op == "in":
            params.append((f.column, _format_in(f.value)))
        elif f.op == "eq" and f.value is None:
            params.append((f.column, "is.null"))
        else:
            params.append((f.column, f"{f.op}.{_format_value(f.value)}"))
    if order is not None:
        direction = "desc" if order.descending else "asc"
        params.append(("order", f"{order.column}.{direction}"))
    if limit is not None:
        params.append(("limit", str(int(limit))))
    return params


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        message = data.get("message") or data.get("error") or data.get("hint")
        if message:
            return str(message)
    # Avoid dumping huge bodies; include a small snippet.
    return f"Store request failed with status {resp.status_code}: {resp.text[:300]}"


class RestStore:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._api_key = (api_key or "").strip()
        if not self._api_key:
            raise StoreError("Store API key is empty.")
        self._timeout_s = timeout_s
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_env(cls) -> "RestStore":
        return cls(
            settings.supabase_url(),
            settings.supabase_key(),
            timeout_s=settings.store_timeout_s(),
        )

    async def open(self) -> None:
        if self._client is not None:
            return None
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout_s,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client is None:
            return None
        await self._client.aclose()
        self._client = None

    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise StoreError("Store client is not initialized. Call open() on startup.")
        return self._client

    def _headers(self, credential: str | None, *, write: bool = False) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {credential or self._api_key}",
        }
        if write:
            headers["Prefer"] = "return=representation"
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: list[tuple[str, str]],
        credential: str | None,
        json: Any = None,
        write: bool = False,
    ) -> list[Row]:
        try:
            resp = await self.client().request(
                method,
                f"/{table}",
                params=params,
                json=json,
                headers=self._headers(credential, write=write),
            )
        except httpx.HTTPError as exc:
            raise StoreError(f"Failed to call store endpoint: {exc}") from exc

        if resp.status_code >= 400:
            raise StoreError(_error_message(resp))
        if resp.status_code == 204 or not resp.content:
            return []

        data = resp.json()
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            raise StoreError("Store returned an unexpected payload.")
        return data

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
        params = build_params(columns=columns, filters=filters, order=order, limit=limit)
        return await self._request("GET", table, params=params, credential=credential)

    async def insert(
        self,
        table: str,
        rows: Sequence[Row],
        *,
        credential: str | None = None,
    ) -> list[Row]:
        if not rows:
            return []
        return await self._request(
            "POST",
            table,
            params=[],
            credential=credential,
            json=list(rows),
            write=True,
        )

    async def update(
        self,
        table: str,
        values: Row,
        *,
        filters: Sequence[Filter],
        credential: str | None = None,
    ) -> list[Row]:
        return await self._request(
            "PATCH",
            table,
            params=build_params(filters=filters),
            credential=credential,
            json=values,
            write=True,
        )

    async def delete(
        self,
        table: str,
        *,
        filters: Sequence[Filter],
        credential: str | None = None,
    ) -> list[Row]:
        return await self._request(
            "DELETE",
            table,
            params=build_params(filters=filters),
            credential=credential,
            write=True,
        )
