"""Settings loaded from environment variables (+ optional .env).

Module-level constants are what the rest of the app imports
(``from core.config import BASE_URL, IDENTITY, PASSWORD``).
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TODO_PB"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # ---- PocketBase ----
    base_url: str
    identity: str
    password: str
    admin_email: str
    admin_password: str
    request_timeout: float

    # ---- logging ----
    log_level: str
    log_dir: Path

    # ---- UI ----
    window_geometry: str
    topmost: bool
    sync_interval_ms: int

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            base_url=_env(_k("BASE_URL"), "http://127.0.0.1:8090"),
            identity=_env(_k("IDENTITY")),
            password=_env(_k("PASSWORD")),
            admin_email=_env(_k("ADMIN_EMAIL")),
            admin_password=_env(_k("ADMIN_PASSWORD")),
            request_timeout=_env_float(_k("REQUEST_TIMEOUT"), 10.0),
            log_level=_env(_k("LOG_LEVEL"), "INFO"),
            log_dir=Path(_env(_k("LOG_DIR"), ".local/todo_pb")).expanduser(),
            window_geometry=_env(_k("WINDOW_GEOMETRY"), "720x560"),
            topmost=_env_bool(_k("TOPMOST"), False),
            sync_interval_ms=_env_int(_k("SYNC_INTERVAL_MS"), 60_000),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS


BASE_URL = SETTINGS.base_url
IDENTITY = SETTINGS.identity
PASSWORD = SETTINGS.password
ADMIN_EMAIL = SETTINGS.admin_email
ADMIN_PASSWORD = SETTINGS.admin_password
REQUEST_TIMEOUT = SETTINGS.request_timeout
LOG_LEVEL = SETTINGS.log_level
LOG_DIR = SETTINGS.log_dir
WINDOW_GEOMETRY = SETTINGS.window_geometry
TOPMOST = SETTINGS.topmost
SYNC_INTERVAL_MS = SETTINGS.sync_interval_ms
