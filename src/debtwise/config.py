"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "DebtWise"
    DB_FILENAME = "debtwise.db"
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on", "busy_timeout": "5000"}
    DEFAULT_CURRENCY = "USD"

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("DEBTWISE_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("DEBTWISE_DATABASE_URL", self._build_sqlite_url())
        self.SUMMARY_REFRESH_MINUTES = _env_int("DEBTWISE_SUMMARY_REFRESH_MINUTES", 15)
        self.DEFAULT_CURRENCY = os.getenv("DEBTWISE_DEFAULT_CURRENCY", self.DEFAULT_CURRENCY)
        if self.SUMMARY_REFRESH_MINUTES <= 0:
            raise ValueError("DEBTWISE_SUMMARY_REFRESH_MINUTES must be positive.")

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("DEBTWISE_DATA_DIR", "instance")
        base_path = Path(data_root).expanduser()
        try:
            path = base_path.resolve()
            path.mkdir(parents=True, exist_ok=True)
            return path
        except PermissionError:
            # Protected install locations fall back to user-local storage.
            fallback_path = Path.home() / f".{self.APP_NAME.lower()}"
            fallback_path.mkdir(parents=True, exist_ok=True)
            return fallback_path.resolve()

    def _build_sqlite_url(self) -> str:
        """Construct the default SQLite URL inside the data directory."""

        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        connect_args: dict[str, Any] = {"check_same_thread": False}
        return {"connect_args": connect_args}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False


class TestConfig(BaseConfig):
    """Configuration pointing at a throwaway database file."""

    __test__ = False  # keep pytest from collecting this as a test class

    DEBUG = False
    TESTING = True

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = Path(data_dir)
        super().__init__()
        self.DEV_MODE = True
        self.DATABASE_URL = self._build_sqlite_url()

    def _resolve_data_dir(self) -> Path:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        return self._data_dir
