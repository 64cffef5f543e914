"""Shared CLI helpers."""

from datetime import datetime

from rich.console import Console

from recallkit.core.config import Settings
from recallkit.core.models import Card
from recallkit.core.storage import SQLiteCardStore

console = Console()

# Global instances (initialized lazily)
_settings: Settings | None = None
_store: SQLiteCardStore | None = None


def get_settings() -> Settings:
    """Get or load settings from the environment."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def get_store() -> SQLiteCardStore:
    """Get or create the card store."""
    global _store
    if _store is None:
        _store = SQLiteCardStore(get_settings().db_path)
    return _store


def reset() -> None:
    """Forget cached settings and store so the next call re-reads the environment."""
    global _settings, _store
    _settings = None
    _store = None


def format_time(value: datetime) -> str:
    """Timestamp as shown in the CLI. Stored times are always UTC."""
    return value.strftime("%Y-%m-%d %H:%M UTC")


def format_due(card: Card) -> str:
    """Human-readable next-due value."""
    if card.next_due is None:
        return "now (new)"
    return format_time(card.next_due)
