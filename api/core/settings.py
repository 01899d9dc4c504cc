"""
Environment-driven settings.

Values are read on demand so tests and deployments can change the environment
without re-importing modules.
"""

from __future__ import annotations

import os


def _env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def log_level() -> str:
    return _env_str("LOG_LEVEL", "INFO").upper()


def api_prefix() -> str:
    prefix = _env_str("API_PREFIX").rstrip("/")
    if prefix and not prefix.startswith("/"):
        prefix = "/" + prefix
    return prefix


def cors_allow_origin() -> str:
    return _env_str("CORS_ORIGIN", "*")


def store_backend() -> str:
    backend = _env_str("STORE_BACKEND").lower()
    if backend:
        return backend
    # Auto-detect: a direct DSN wins over the hosted REST endpoint.
    return "postgres" if _env_str("DATABASE_URL") else "rest"


def pool_min_size() -> int:
    return _env_int("DB_POOL_MIN", 1)


def pool_max_size() -> int:
    return _env_int("DB_POOL_MAX", 5)


def supabase_url() -> str:
    url = _env_str("SUPABASE_URL")
    if not url:
        raise RuntimeError("SUPABASE_URL is not set.")
    return url.rstrip("/")


def supabase_key() -> str:
    key = _env_str("SUPABASE_SERVICE_ROLE_KEY")
    if not key:
        raise RuntimeError("SUPABASE_SERVICE_ROLE_KEY is not set.")
    return key


def store_timeout_s() -> float:
    return _env_float("STORE_TIMEOUT_S", 30.0)
