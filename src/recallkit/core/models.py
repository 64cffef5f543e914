"""Pydantic models for recallkit cards."""

from datetime import UTC, datetime
from typing import Annotated
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from recallkit.core.errors import InvalidState

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5


def utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Card(BaseModel):
    """A single front/back fact scheduled for review.

    Cards are immutable. The scheduler produces an updated copy for every
    grade and the store swaps it in by version.
    """

    model_config = ConfigDict(frozen=True)

    id: Annotated[str, Field(default_factory=lambda: str(uuid4()))]
    owner: str
    front: str
    back: str

    # Grouping used only to filter queries
    path_id: str | None = None

    # Scheduling state
    difficulty: int = MIN_DIFFICULTY
    review_count: int = 0
    success_count: int = 0
    last_reviewed: datetime | None = None
    next_due: datetime | None = None  # None means never scheduled, so due now

    # Optimistic concurrency token
    version: int = 0

    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("last_reviewed", "next_due", "created_at")
    @classmethod
    def _normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    def is_due(self, now: datetime) -> bool:
        """Whether the card should be shown at ``now``."""
        return self.next_due is None or self.next_due <= as_utc(now)

    @property
    def success_rate(self) -> float | None:
        """Fraction of reviews recalled correctly, or None before the first review."""
        if self.review_count == 0:
            return None
        return self.success_count / self.review_count

    @property
    def interval_days(self) -> int:
        """Interval implied by the current difficulty."""
        return 2**self.difficulty


def check_invariants(card: Card) -> None:
    """Raise InvalidState if the card breaks any scheduling invariant."""
    if not MIN_DIFFICULTY <= card.difficulty <= MAX_DIFFICULTY:
        raise InvalidState(
            f"Card {card.id}: difficulty {card.difficulty} outside "
            f"[{MIN_DIFFICULTY}, {MAX_DIFFICULTY}]"
        )
    if card.review_count < 0:
        raise InvalidState(f"Card {card.id}: negative review_count {card.review_count}")
    if not 0 <= card.success_count <= card.review_count:
        raise InvalidState(
            f"Card {card.id}: success_count {card.success_count} not within "
            f"[0, review_count={card.review_count}]"
        )
    if (
        card.next_due is not None
        and card.last_reviewed is not None
        and card.next_due < card.last_reviewed
    ):
        raise InvalidState(f"Card {card.id}: next_due precedes last_reviewed")
    if card.version < 0:
        raise InvalidState(f"Card {card.id}: negative version {card.version}")
