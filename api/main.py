from __future__ import annotations

import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core import settings
from core.cors import PermissiveCORSMiddleware, cors_headers
from core.db import PostgresStore
from core.errors import GatewayError, envelope
from core.rest import RestStore
from core.store import RowStore
from resources import router as resources_router
from resources import schemas
from resources.descriptors import ResourceDescriptor
from resources.registry import REGISTRY
from resources.service import ResourceGateway

logger = logging.getLogger(__name__)

HTTP_MESSAGES = {404: "Not found", 405: "Method not allowed"}


def build_store() -> RowStore:
    backend = settings.store_backend()
    if backend == "postgres":
        return PostgresStore.from_env()
    if backend == "rest":
        return RestStore.from_env()
    raise RuntimeError(f"Unknown STORE_BACKEND: {backend}")


def create_app(
    *,
    store: RowStore | None = None,
    descriptors: Mapping[str, ResourceDescriptor] = REGISTRY,
    gateway: ResourceGateway | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # One store handle per process, injected into the gateway.
        active = gateway or ResourceGateway(store or build_store(), descriptors)
        await active.store.open()
        app.state.gateway = active
        logger.info("store_opened backend=%s resources=%s", type(active.store).__name__, ",".join(descriptors))
        try:
            yield
        finally:
            await active.store.close()

    app = FastAPI(lifespan=lifespan)

    # Answers OPTIONS and stamps CORS headers on every response.
    app.add_middleware(PermissiveCORSMiddleware, allow_origin=settings.cors_allow_origin())

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(_: Request, exc: GatewayError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=envelope(exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = HTTP_MESSAGES.get(exc.status_code, str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=envelope(message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=envelope("Invalid request"))

    # Unhandled errors are answered outside the middleware stack, so the CORS
    # headers are added here as well.
    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=envelope("Internal server error"),
            headers=cors_headers(allow_origin=settings.cors_allow_origin()),
        )

    prefix = settings.api_prefix()

    @app.get(f"{prefix}/health", response_model=schemas.HealthResponse)
    def health() -> schemas.HealthResponse:
        return schemas.HealthResponse(ok=True, timestamp=datetime.now(timezone.utc))

    app.include_router(resources_router.router, prefix=prefix, tags=["resources"])
    return app


logging.basicConfig(level=settings.log_level())

app = create_app()
