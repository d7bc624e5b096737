"""Configuration management for the reading tracker.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Sessions shorter than this are not recorded
    min_session_ms: int

    # Retention
    max_events_per_document: int  # 0 = unlimited
    retention_days: int  # 0 = keep forever

    # Analytics offload
    offload_enabled: bool

    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "READINGTRACKER_DB_PATH",
            str(Path.home() / ".readingtracker" / "readings.db"),
        )
        db_path = Path(db_path_str).expanduser()

        return cls(
            db_path=db_path,
            min_session_ms=int(os.environ.get("READINGTRACKER_MIN_SESSION_MS", "500")),
            max_events_per_document=int(
                os.environ.get("READINGTRACKER_MAX_EVENTS_PER_DOCUMENT", "0")
            ),
            retention_days=int(os.environ.get("READINGTRACKER_RETENTION_DAYS", "0")),
            offload_enabled=_env_bool("READINGTRACKER_OFFLOAD", True),
            log_level=os.environ.get("READINGTRACKER_LOG_LEVEL", "WARNING").upper(),
        )

    @property
    def is_memory_db(self) -> bool:
        return str(self.db_path) == ":memory:"

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        # Check database directory is writable
        if not self.is_memory_db and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if self.min_session_ms < 0:
            errors.append("READINGTRACKER_MIN_SESSION_MS must not be negative")
        if self.max_events_per_document < 0:
            errors.append("READINGTRACKER_MAX_EVENTS_PER_DOCUMENT must not be negative")
        if self.retention_days < 0:
            errors.append("READINGTRACKER_RETENTION_DAYS must not be negative")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
