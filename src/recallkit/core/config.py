"""Settings read from the environment."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from rich.logging import RichHandler

from recallkit.core.errors import ConfigurationError

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    """Runtime settings shared by the CLI and the web server."""

    db_path: Path
    owner: str = "local"
    session_limit: int = 20
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``RECALLKIT_*`` environment variables."""
        db_path = Path(
            os.environ.get("RECALLKIT_DB_PATH", Path.cwd() / ".recallkit" / "recallkit.db")
        )
        owner = os.environ.get("RECALLKIT_OWNER", "local").strip()
        if not owner:
            raise ConfigurationError("RECALLKIT_OWNER must not be empty")

        raw_limit = os.environ.get("RECALLKIT_SESSION_LIMIT", "20")
        try:
            session_limit = int(raw_limit)
        except ValueError as e:
            raise ConfigurationError(
                f"RECALLKIT_SESSION_LIMIT must be an integer, got {raw_limit!r}"
            ) from e
        if session_limit < 1:
            raise ConfigurationError(
                f"RECALLKIT_SESSION_LIMIT must be positive, got {session_limit}"
            )

        log_level = os.environ.get("RECALLKIT_LOG_LEVEL", "WARNING").upper()
        if log_level not in _LOG_LEVELS:
            raise ConfigurationError(f"Unknown RECALLKIT_LOG_LEVEL: {log_level}")

        return cls(
            db_path=db_path,
            owner=owner,
            session_limit=session_limit,
            log_level=log_level,
        )


def configure_logging(level: str | int = logging.WARNING) -> None:
    """Route log records through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
