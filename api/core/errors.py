"""
Error taxonomy and the single JSON error envelope.

Every error response body is `{"error": "<message>"}`.
"""

from __future__ import annotations


class GatewayError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(GatewayError):
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(GatewayError):
    status_code = 404
    default_message = "Not found"


class NotAllowedError(GatewayError):
    status_code = 405
    default_message = "Method not allowed"


# Store failures are reported verbatim and never retried.
class StoreError(GatewayError):
    status_code = 500
    default_message = "Store request failed"


def envelope(message: str) -> dict[str, str]:
    return {"error": message}
