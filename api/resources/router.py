"""
Generic resource endpoints.

Exact-segment dispatch: `/{resource}` for the collection and
`/{resource}/{row_id}` for a single row. Every verb is routed here so the
gateway, not the framework, decides between 405 and a store call.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from auth import dependencies as auth_dependencies
from core.errors import ValidationError

from . import schemas
from .service import ResourceGateway

router = APIRouter()

ROUTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": schemas.ErrorResponse} for status in (400, 404, 405, 500)
}


def get_gateway(request: Request) -> ResourceGateway:
    return request.app.state.gateway


async def _read_json(request: Request) -> Any:
    if request.method not in ("POST", "PUT", "PATCH"):
        return None
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise ValidationError("Request body must be valid JSON") from exc


def _respond(status_code: int, payload: Any) -> Response:
    if status_code == 204:
        return Response(status_code=204)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


@router.api_route("/{resource}", methods=ROUTED_METHODS, responses=ERROR_RESPONSES)
async def collection(
    resource: str,
    request: Request,
    gateway: ResourceGateway = Depends(get_gateway),
    credential: str | None = Depends(auth_dependencies.get_bearer_credential),
) -> Response:
    # Method and resource checks come before the body is parsed.
    gateway.check_method(request.method, resource)
    status_code, payload = await gateway.handle(
        request.method,
        resource,
        query=dict(request.query_params),
        body=await _read_json(request),
        credential=credential,
    )
    return _respond(status_code, payload)


@router.api_route("/{resource}/{row_id}", methods=ROUTED_METHODS, responses=ERROR_RESPONSES)
async def item(
    resource: str,
    row_id: str,
    request: Request,
    gateway: ResourceGateway = Depends(get_gateway),
    credential: str | None = Depends(auth_dependencies.get_bearer_credential),
) -> Response:
    gateway.check_method(request.method, resource, item=True)
    status_code, payload = await gateway.handle(
        request.method,
        resource,
        row_id=row_id,
        body=await _read_json(request),
        credential=credential,
    )
    return _respond(status_code, payload)
