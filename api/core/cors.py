"""
Permissive CORS middleware.

Runs outermost on every request: `OPTIONS` is answered here with an empty
`200` (any path, registered or not) and every other response gets the same
headers, error responses included.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

ALLOW_METHODS = ("GET", "POST", "PATCH", "DELETE", "OPTIONS")
ALLOW_HEADERS = ("Content-Type", "Authorization")


def cors_headers(
    *,
    allow_origin: str = "*",
    allow_methods: tuple[str, ...] = ALLOW_METHODS,
    allow_headers: tuple[str, ...] = ALLOW_HEADERS,
) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Methods": ",".join(allow_methods),
        "Access-Control-Allow-Headers": ", ".join(allow_headers),
    }


class PermissiveCORSMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, allow_origin: str = "*") -> None:
        super().__init__(app)
        self.headers = cors_headers(allow_origin=allow_origin)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)
        response.headers.update(self.headers)
        return response
