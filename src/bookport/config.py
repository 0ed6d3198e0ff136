"""Configuration management for bookport.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

KNOWN_FORMATS = ("json", "csv", "goodreads")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Dedupe
    fuzzy_threshold: float  # similarity at which no-ISBN books merge

    # Export
    default_format: str

    # Logging
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "BOOKPORT_DB_PATH",
            str(Path.home() / ".bookport" / "bookport.db"),
        )

        return cls(
            db_path=Path(db_path_str).expanduser(),
            fuzzy_threshold=float(os.environ.get("BOOKPORT_FUZZY_THRESHOLD", "0.95")),
            default_format=os.environ.get("BOOKPORT_DEFAULT_FORMAT", "json").lower(),
            log_level=os.environ.get("BOOKPORT_LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not 0.0 <= self.fuzzy_threshold <= 1.0:
            errors.append(
                f"BOOKPORT_FUZZY_THRESHOLD must be between 0 and 1, got {self.fuzzy_threshold}"
            )

        if self.default_format not in KNOWN_FORMATS:
            errors.append(f"Unknown default format: {self.default_format}")

        if self.log_level not in LOG_LEVELS:
            errors.append(f"Unknown log level: {self.log_level}")

        # Check database directory is writable
        if not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

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
