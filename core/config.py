"""
Core Module - Configuration.

Runtime settings for the engine and the sweeper process,
loaded from environment variables (and a .env file if present).
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

from core.constants import (
    DEFAULT_MAX_CONFLICT_RETRIES,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
)


DEFAULT_DATABASE_URL = "sqlite:///house_points.db"


@dataclass
class HouseRulesConfig:
    """Engine configuration."""

    # Database
    database_url: str = DEFAULT_DATABASE_URL
    """SQLAlchemy database URL."""

    pool_size: int = 10
    """Connections kept in the pool (ignored for SQLite)."""

    db_echo: bool = False
    """Log SQL statements."""

    # Concurrency
    max_conflict_retries: int = DEFAULT_MAX_CONFLICT_RETRIES
    """Attempts before a lost vote race is surfaced to the caller."""

    # Sweeper
    sweep_interval_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS
    """Interval between scheduled expiry sweeps."""

    # Logging
    log_level: str = "INFO"
    """Logging level."""

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "HouseRulesConfig":
        """Load configuration from environment variables."""
        load_dotenv(env_file)
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
            db_echo=os.getenv("DB_ECHO", "false").lower() == "true",
            max_conflict_retries=int(
                os.getenv("MAX_CONFLICT_RETRIES", str(DEFAULT_MAX_CONFLICT_RETRIES))
            ),
            sweep_interval_seconds=int(
                os.getenv("SWEEP_INTERVAL_SECONDS", str(DEFAULT_SWEEP_INTERVAL_SECONDS))
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.database_url:
            errors.append("database_url must be set")

        if self.pool_size < 1:
            errors.append("pool_size must be at least 1")

        if self.max_conflict_retries < 1:
            errors.append("max_conflict_retries must be at least 1")

        if self.sweep_interval_seconds < 1:
            errors.append("sweep_interval_seconds must be at least 1")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"log_level {self.log_level} is not a logging level")

        return errors
