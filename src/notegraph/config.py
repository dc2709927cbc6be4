"""Configuration module for notegraph."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from notegraph import __version__

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config lives alongside the default database
_USER_ENV = Path.home() / ".notegraph" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class NoteGraphConfig(BaseModel):
    """Configuration for the note graph store."""

    # Base directory for relative paths
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEGRAPH_BASE_DIR", "."))
    )
    # Database configuration
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTEGRAPH_DATABASE_PATH", "data/db/notegraph.db")
        )
    )
    # When True, the store lives in an in-memory SQLite database and is
    # discarded when the process exits.
    in_memory_db: bool = Field(
        default_factory=lambda: _env_bool("NOTEGRAPH_IN_MEMORY_DB", "false")
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("NOTEGRAPH_LOG_LEVEL", "INFO").upper()
    )
    version: str = Field(default=__version__)

    # Slug collision handling: "-2", "-3", ... up to this many attempts
    slug_max_attempts: int = Field(
        default_factory=lambda: int(os.getenv("NOTEGRAPH_SLUG_MAX_ATTEMPTS", "1000"))
    )
    # Hard cap on extracted task text
    task_max_length: int = Field(
        default_factory=lambda: int(os.getenv("NOTEGRAPH_TASK_MAX_LENGTH", "200"))
    )
    # Search preview window (characters before/after the first match)
    preview_before: int = Field(
        default_factory=lambda: int(os.getenv("NOTEGRAPH_PREVIEW_BEFORE", "50"))
    )
    preview_after: int = Field(
        default_factory=lambda: int(os.getenv("NOTEGRAPH_PREVIEW_AFTER", "100"))
    )
    preview_fallback_length: int = Field(
        default_factory=lambda: int(
            os.getenv("NOTEGRAPH_PREVIEW_FALLBACK_LENGTH", "150")
        )
    )
    # Number of quick captures returned by the history query
    capture_history_limit: int = Field(
        default_factory=lambda: int(
            os.getenv("NOTEGRAPH_CAPTURE_HISTORY_LIMIT", "10")
        )
    )

    @model_validator(mode="after")
    def _validate_limits(self) -> "NoteGraphConfig":
        """Reject limits that would make the store misbehave."""
        if self.slug_max_attempts < 1:
            raise ValueError("slug_max_attempts must be >= 1")
        if self.task_max_length < 1:
            raise ValueError("task_max_length must be >= 1")
        if self.preview_before < 0 or self.preview_after < 0:
            raise ValueError("preview window sizes must be >= 0")
        if self.preview_fallback_length < 1:
            raise ValueError("preview_fallback_length must be >= 1")
        if self.capture_history_limit < 1:
            raise ValueError("capture_history_limit must be >= 1")
        if self.slug_max_attempts > 100_000:
            logger.warning(
                "slug_max_attempts=%d is very high; a collision storm may take "
                "a long time to fail",
                self.slug_max_attempts,
            )
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        if self.in_memory_db:
            return "sqlite:///:memory:"
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"

    def get_log_level(self) -> int:
        """Resolve the configured level name to a logging constant."""
        return getattr(logging, self.log_level, logging.INFO)


# Create a global config instance
config = NoteGraphConfig()

