"""Difficulty/interval update rule for spaced repetition.

Difficulty is both a recall-confidence signal and the exponent of the review
interval: a failed recall raises it by one, a successful one lowers it by one,
clamped to [1, 5]. The next review happens ``2 ** difficulty`` days after the
grade, so intervals stay between 2 and 32 days.

How overdue a card was when graded has no influence on the new interval.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from recallkit.core.models import (
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    Card,
    as_utc,
    check_invariants,
)

logger = logging.getLogger(__name__)


def next_difficulty(difficulty: int, success: bool) -> int:
    """Difficulty after a grade, clamped to the valid range."""
    if success:
        return max(MIN_DIFFICULTY, difficulty - 1)
    return min(MAX_DIFFICULTY, difficulty + 1)


def interval_for(difficulty: int) -> timedelta:
    """Review interval for a given difficulty."""
    return timedelta(days=2**difficulty)


def apply_grade(card: Card, success: bool, now: datetime) -> Card:
    """Return the card's state after a grade at ``now``.

    Pure: the input card is not modified and nothing is persisted. Grading a
    card before it is due is allowed and reschedules it from ``now``.

    Raises:
        InvalidState: if the input card already breaks an invariant.
    """
    check_invariants(card)
    now = as_utc(now)

    difficulty = next_difficulty(card.difficulty, success)
    updated = card.model_copy(
        update={
            "difficulty": difficulty,
            "last_reviewed": now,
            "next_due": now + interval_for(difficulty),
            "review_count": card.review_count + 1,
            "success_count": card.success_count + (1 if success else 0),
            "version": card.version + 1,
        }
    )
    logger.debug(
        "Graded card %s success=%s difficulty %d -> %d",
        card.id,
        success,
        card.difficulty,
        difficulty,
    )
    return updated


def due_sort_key(card: Card) -> tuple[bool, datetime | None, str]:
    """Queue order: never-scheduled cards first, then oldest due, then id."""
    if card.next_due is None:
        return (False, None, card.id)
    return (True, card.next_due, card.id)
