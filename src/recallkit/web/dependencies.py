"""Dependency injection for FastAPI routes."""

from functools import lru_cache

from fastapi import Header

from recallkit.core.clock import Clock, SystemClock
from recallkit.core.config import Settings
from recallkit.core.storage import CardStore, SQLiteCardStore
from recallkit.web.sessions import SessionRegistry


@lru_cache
def get_settings() -> Settings:
    """Get settings (singleton)."""
    return Settings.from_env()


@lru_cache
def get_store() -> CardStore:
    """Get the card store (singleton)."""
    return SQLiteCardStore(get_settings().db_path)


@lru_cache
def get_clock() -> Clock:
    """Get the clock used to schedule reviews."""
    return SystemClock()


@lru_cache
def get_registry() -> SessionRegistry:
    """Get the registry of live review sessions (singleton)."""
    return SessionRegistry()


def get_owner(x_owner_id: str = Header(..., min_length=1)) -> str:
    """Owner identity supplied by the calling application."""
    return x_owner_id
