"""
Bearer credential extraction.

Tokens are issued by the external identity provider and forwarded to the
store untouched; the gateway never decodes them. A missing or non-bearer
Authorization header simply means "no credential".
"""

from __future__ import annotations

from fastapi import Header


def _extract_bearer_token(authorization: str | None) -> str | None:
    raw = (authorization or "").strip()
    if not raw:
        return None

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        return None

    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        return None
    return token


async def get_bearer_credential(authorization: str | None = Header(default=None)) -> str | None:
    return _extract_bearer_token(authorization)
