"""Core library for recallkit."""

from recallkit.core.clock import Clock, FixedClock, SystemClock
from recallkit.core.errors import (
    CardAlreadyExists,
    ConcurrentModification,
    ConfigurationError,
    InvalidState,
    InvalidTransition,
    NotFound,
    RecallKitError,
)
from recallkit.core.models import MAX_DIFFICULTY, MIN_DIFFICULTY, Card, check_invariants
from recallkit.core.scheduler import apply_grade, due_sort_key, interval_for, next_difficulty
from recallkit.core.session import CardPhase, ReviewSession, SessionStatus, SessionSummary
from recallkit.core.storage import CardStore, InMemoryCardStore, SQLiteCardStore

__all__ = [
    # Models
    "Card",
    "MAX_DIFFICULTY",
    "MIN_DIFFICULTY",
    "check_invariants",
    # Scheduler
    "apply_grade",
    "due_sort_key",
    "interval_for",
    "next_difficulty",
    # Storage
    "CardStore",
    "InMemoryCardStore",
    "SQLiteCardStore",
    # Session
    "CardPhase",
    "ReviewSession",
    "SessionStatus",
    "SessionSummary",
    # Clock
    "Clock",
    "FixedClock",
    "SystemClock",
    # Errors
    "CardAlreadyExists",
    "ConcurrentModification",
    "ConfigurationError",
    "InvalidState",
    "InvalidTransition",
    "NotFound",
    "RecallKitError",
]
