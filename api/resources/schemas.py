"""
Pydantic schemas shared by the HTTP layer.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    ok: bool = True
    timestamp: datetime
