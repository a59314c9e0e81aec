"""Runtime settings read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_BATCH_SIZE = 500
DEFAULT_FUZZY_THRESHOLD = 80
DEFAULT_INSIGHTS_TIMEOUT = 30.0


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


def default_database_path() -> str:
    """Return ~/.ingestkit/ingestkit.db, creating the directory."""
    db_dir = Path.home() / ".ingestkit"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "ingestkit.db")


@dataclass(frozen=True)
class Settings:
    """Process settings.

    Attributes:
        database_path: SQLite file path, None for the default location
        log_level: Level name for the package logger
        workers: Parser worker threads (0 = CPU count)
        batch_size: Rows per categorize/persist batch
        fuzzy_threshold: Minimum fuzzy score (0-100) for fallback matches
        insights_timeout: Seconds allowed for post-import insights
    """

    database_path: Optional[str] = None
    log_level: str = "INFO"
    workers: int = 0
    batch_size: int = DEFAULT_BATCH_SIZE
    fuzzy_threshold: int = DEFAULT_FUZZY_THRESHOLD
    insights_timeout: float = DEFAULT_INSIGHTS_TIMEOUT

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from INGESTKIT_* environment variables."""
        return cls(
            database_path=os.environ.get("INGESTKIT_DB_PATH") or None,
            log_level=os.environ.get("INGESTKIT_LOG_LEVEL", "INFO"),
            workers=_env_int("INGESTKIT_WORKERS", 0),
            batch_size=_env_int("INGESTKIT_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            fuzzy_threshold=_env_int("INGESTKIT_FUZZY_THRESHOLD", DEFAULT_FUZZY_THRESHOLD),
            insights_timeout=_env_float("INGESTKIT_INSIGHTS_TIMEOUT", DEFAULT_INSIGHTS_TIMEOUT),
        )
