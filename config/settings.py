"""Process-wide settings resolved once at startup."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping


@dataclass(frozen=True)
class Settings:
    secret_key: str
    supabase_url: str
    supabase_service_key: str
    local_timezone: str = "Asia/Taipei"
    store_pool_size: int = 10
    session_cookie_name: str = "report_session"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 3000


def _int_setting(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = (environ.get(key) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{key} must be greater than zero")
    return value


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from ``environ`` (defaults to ``os.environ``).

    ``SECRET_KEY``, ``SUPABASE_URL`` and ``SUPABASE_SERVICE_KEY`` are required
    and raise ``KeyError`` when absent.
    """

    environ = os.environ if environ is None else environ
    return Settings(
        secret_key=environ["SECRET_KEY"],
        supabase_url=environ["SUPABASE_URL"],
        supabase_service_key=environ["SUPABASE_SERVICE_KEY"],
        local_timezone=environ.get("LOCAL_TIMEZONE") or Settings.local_timezone,
        store_pool_size=_int_setting(environ, "STORE_POOL_SIZE", Settings.store_pool_size),
        session_cookie_name=environ.get("SESSION_COOKIE_NAME") or Settings.session_cookie_name,
        log_level=(environ.get("LOG_LEVEL") or Settings.log_level).upper(),
        host=environ.get("HOST") or Settings.host,
        port=_int_setting(environ, "PORT", Settings.port),
    )
