"""Application configuration objects."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Type

from sqlalchemy.pool import NullPool, StaticPool


def _split_keys(raw: str | None) -> list[str]:
    if not raw:
        return []
    parts = raw.replace("\n", ",").split(",")
    return [part.strip() for part in parts if part.strip()]


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class BaseConfig:
    """Shared defaults across all environments."""

    APP_NAME = "Exam Question Scanner"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite+pysqlite:///scanner_dev.db",
    )
    GEMINI_API_KEYS = _split_keys(os.getenv("GEMINI_API_KEYS") or os.getenv("GEMINI_API_KEY"))
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    GEMINI_API_BASE = os.getenv(
        "GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta"
    )
    GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.1"))
    AI_API_MAX_RETRIES = int(os.getenv("AI_API_MAX_RETRIES", "3"))
    AI_TIMEOUT_SECONDS = int(os.getenv("AI_TIMEOUT_SECONDS", "120"))
    AI_CONNECT_TIMEOUT_SEC = int(os.getenv("AI_CONNECT_TIMEOUT_SEC", "15"))
    AI_READ_TIMEOUT_SEC = int(
        os.getenv("AI_READ_TIMEOUT_SEC", str(AI_TIMEOUT_SECONDS))
    )
    NETWORK_PROBE_URL = os.getenv("NETWORK_PROBE_URL") or GEMINI_API_BASE
    NETWORK_WAIT_MAX_SEC = int(os.getenv("NETWORK_WAIT_MAX_SEC", "300"))
    NETWORK_POLL_INTERVAL_SEC = float(os.getenv("NETWORK_POLL_INTERVAL_SEC", "2.0"))
    NETWORK_RETRY_LIMIT = int(os.getenv("NETWORK_RETRY_LIMIT", "5"))
    PDF_RENDER_RESOLUTION = int(os.getenv("PDF_RENDER_RESOLUTION", "144"))
    PDF_MAX_PAGES = int(os.getenv("PDF_MAX_PAGES", "200"))
    SCAN_AUTO_SAVE = _flag("SCAN_AUTO_SAVE", "true")
    SCAN_JOBS_SYNC = _flag("SCAN_JOBS_SYNC", "false")
    SCAN_REQUEUE_ERRORED_PAGES = _flag("SCAN_REQUEUE_ERRORED_PAGES", "true")
    SCAN_MAX_FILES = int(os.getenv("SCAN_MAX_FILES", "20"))
    INFERENCE_LOG_DIR = os.getenv("INFERENCE_LOG_DIR", "")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    JSON_SORT_KEYS = False
    SQLITE_TIMEOUT_SEC = int(os.getenv("SQLITE_TIMEOUT_SEC", "15"))
    SQLITE_BUSY_TIMEOUT_MS = int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "15000"))
    if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "poolclass": NullPool,
            "connect_args": {"timeout": SQLITE_TIMEOUT_SEC, "check_same_thread": False},
        }
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_pre_ping": True,
            "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
            "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "10")),
            "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", "30")),
        }


class DevConfig(BaseConfig):
    DEBUG = True


class ProdConfig(BaseConfig):
    DEBUG = False


class TestConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite+pysqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {
        "poolclass": StaticPool,
        "connect_args": {"check_same_thread": False},
    }
    GEMINI_API_KEYS = ["test-key-1", "test-key-2"]
    NETWORK_WAIT_MAX_SEC = 1
    SCAN_JOBS_SYNC = True


CONFIG_ALIASES: dict[str, Type[BaseConfig]] = {
    "dev": DevConfig,
    "development": DevConfig,
    "prod": ProdConfig,
    "production": ProdConfig,
    "test": TestConfig,
    "testing": TestConfig,
}


@lru_cache
def resolve_config(name_or_class: Any) -> Any:
    """Resolve config argument to the object expected by `app.config.from_object`."""

    if name_or_class is None:
        return DevConfig
    if isinstance(name_or_class, str):
        return CONFIG_ALIASES.get(name_or_class, name_or_class)
    return name_or_class
