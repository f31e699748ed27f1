# src/cadence/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (provider keys live in the credential store).
- Every path defaults under a local, gitignored data dir.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "CADENCE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except ImportError:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


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

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    settings_path: Path
    credentials_path: Path
    tasks_db_path: Path

    # ---- Providers ----
    default_provider: str
    http_connect_timeout_seconds: float
    http_read_timeout_seconds: float

    # ---- Learning buffers ----
    correction_capacity: int
    accuracy_capacity: int
    impression_capacity: int
    learning_expiry_days: int

    # ---- Context ----
    recent_tasks_limit: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "cadence") or "cadence"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/cadence"))
        settings_path = _env_path(_k("SETTINGS_PATH"), data_dir / "settings.json")
        credentials_path = _env_path(_k("CREDENTIALS_PATH"), data_dir / "credentials.json")
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        default_provider = (_env(_k("DEFAULT_PROVIDER"), "on_device") or "on_device").strip()

        connect_timeout = _env_float(_k("HTTP_CONNECT_TIMEOUT_SECONDS"), 5.0)
        read_timeout = _env_float(_k("HTTP_READ_TIMEOUT_SECONDS"), 60.0)
        # keep read >= connect as a sane baseline
        read_timeout = max(read_timeout, connect_timeout)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            settings_path=settings_path,
            credentials_path=credentials_path,
            tasks_db_path=tasks_db_path,
            default_provider=default_provider,
            http_connect_timeout_seconds=connect_timeout,
            http_read_timeout_seconds=read_timeout,
            correction_capacity=_env_int(_k("CORRECTION_CAPACITY"), 100),
            accuracy_capacity=_env_int(_k("ACCURACY_CAPACITY"), 100),
            impression_capacity=_env_int(_k("IMPRESSION_CAPACITY"), 200),
            learning_expiry_days=_env_int(_k("LEARNING_EXPIRY_DAYS"), 90),
            recent_tasks_limit=_env_int(_k("RECENT_TASKS_LIMIT"), 10),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
