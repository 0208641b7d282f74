from __future__ import annotations

import os
from dataclasses import dataclass


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or default).strip()


def _int_env(name: str, default: int) -> int:
    try:
        raw = (os.getenv(name) or "").strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


@dataclass(frozen=True)
class Settings:
    db_path: str = "./data/memories.db"
    token_secret: str = "change-me"
    token_ttl_days: int = 30
    api_prefix: str = "/api"
    cors_origin: str = "*"
    log_level: str = "INFO"
    page_size: int = 10


def load_settings() -> Settings:
    """
    Read settings from the environment. Unset values fall back to defaults.
    """
    return Settings(
        db_path=_env("MEMORIES_DB_PATH", Settings.db_path),
        token_secret=_env("MEMORIES_TOKEN_SECRET", Settings.token_secret),
        token_ttl_days=_int_env("MEMORIES_TOKEN_TTL_DAYS", Settings.token_ttl_days),
        api_prefix=_env("MEMORIES_API_PREFIX", Settings.api_prefix).rstrip("/"),
        cors_origin=_env("MEMORIES_CORS_ORIGIN", Settings.cors_origin),
        log_level=_env("MEMORIES_LOG_LEVEL", Settings.log_level),
        page_size=_int_env("MEMORIES_PAGE_SIZE", Settings.page_size),
    )
