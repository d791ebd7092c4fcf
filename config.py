"""
config.py
---------
Centralised runtime settings for the anonymising migration tool.

Loads settings from environment variables, with ``.env`` file support via
python-dotenv. Settings are exposed as frozen dataclasses so configuration is
immutable at runtime.

Design Decision:
    Class-level defaults mean the tool works without any ``.env`` file, while
    environment overrides tune pool sizes and batch sizes for large tables.
    Per-run settings (endpoints, table lists) live in migration config files
    handled by ``core.config_parser``; this module only holds process-wide
    knobs.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)


@dataclass(frozen=True)
class DatabaseConfig:
    """Connector settings shared by every endpoint."""
    pool_size: int = field(default_factory=lambda: int(os.getenv("DB_POOL_SIZE", "10")))
    connect_timeout: int = field(
        default_factory=lambda: int(os.getenv("DB_CONNECT_TIMEOUT", "10"))
    )
    # Credentials are never read from here; they come from the endpoint URL
    # or the migration config file for each run.


@dataclass(frozen=True)
class MigrationConfig:
    """Migration engine settings."""
    batch_size: int = field(
        default_factory=lambda: int(os.getenv("MIGRATION_BATCH_SIZE", "1000"))
    )
    parallel: int = field(
        default_factory=lambda: int(os.getenv("MIGRATION_PARALLEL", "1"))
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper()
    )
    log_file: str | None = field(
        default_factory=lambda: os.getenv("LOG_FILE")  # None → log to stderr only
    )


@dataclass(frozen=True)
class AppConfig:
    """Root application configuration."""
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    migration: MigrationConfig = field(default_factory=MigrationConfig)
    app_name: str = "anonymigrate"
    app_version: str = "1.0.0"


def load_config() -> AppConfig:
    """
    Build and return the application configuration.

    Example::

        cfg = load_config()
        print(cfg.db.pool_size)             # 10
        print(cfg.migration.batch_size)     # 1000
    """
    return AppConfig()


# Module-level singleton used throughout the application
CONFIG: AppConfig = load_config()


def get_log_level() -> int:
    """Convert string log level from config to logging module constant."""
    level = getattr(logging, CONFIG.migration.log_level, None)
    if not isinstance(level, int):
        return logging.INFO
    return level
