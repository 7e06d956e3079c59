# src/prioqueue/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Values are parsed leniently here; the queue service validates them when it is built.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "PRIOQ"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
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


def _env_float_opt(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths ----
    data_dir: Path
    tasks_db_path: Path

    # ---- Queue service ----
    concurrency: int
    polling_interval_ms: int
    rate_interval_ms: int
    rate_interval_cap: int
    batch_size: int
    default_max_retries: int
    handler_timeout_s: float | None
    recover_orphans: bool

    # ---- Console ----
    console_enabled: bool
    demo_handlers: bool

    @staticmethod
    def from_env(*, load_env_file: bool = True) -> "Settings":
        if load_env_file:
            load_dotenv(override=False)

        app_name = _env(_k("APP_NAME"), "prioqueue") or "prioqueue"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/prioqueue"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            concurrency=_env_int(_k("CONCURRENCY"), 5),
            polling_interval_ms=_env_int(_k("POLLING_INTERVAL_MS"), 5000),
            rate_interval_ms=_env_int(_k("RATE_INTERVAL_MS"), 1000),
            rate_interval_cap=_env_int(_k("RATE_INTERVAL_CAP"), 10),
            batch_size=_env_int(_k("BATCH_SIZE"), 10),
            default_max_retries=_env_int(_k("DEFAULT_MAX_RETRIES"), 3),
            handler_timeout_s=_env_float_opt(_k("HANDLER_TIMEOUT_S"), None),
            recover_orphans=_env_bool(_k("RECOVER_ORPHANS"), True),
            console_enabled=_env_bool(_k("CONSOLE_ENABLED"), True),
            demo_handlers=_env_bool(_k("DEMO_HANDLERS"), False),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
