"""Review session controller: one bounded sitting for one owner.

Each queued card moves through present -> reveal -> grade. A grade is
written to the store as soon as it is given; abandoning the session before
that discards the card in flight without touching the store.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import StrEnum

from recallkit.core.clock import Clock, SystemClock
from recallkit.core.errors import ConcurrentModification, InvalidTransition, RecallKitError
from recallkit.core.models import Card
from recallkit.core.scheduler import apply_grade
from recallkit.core.storage import CardStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20


class SessionStatus(StrEnum):
    """Lifecycle of a whole session."""

    PENDING = "pending"
    ACTIVE = "active"
    FINISHED = "finished"
    ABANDONED = "abandoned"


class CardPhase(StrEnum):
    """Where a card stands within a session."""

    QUEUED = "queued"
    PRESENTING = "presenting"  # front shown
    REVEALED = "revealed"  # back shown, nothing written yet
    GRADED = "graded"  # write in flight
    DONE = "done"  # grade committed
    SKIPPED = "skipped"


@dataclass
class SessionSummary:
    """Counts describing a session so far."""

    status: SessionStatus
    queued: int
    graded: int
    succeeded: int
    skipped: int
    remaining: int


class ReviewSession:
    """Drives one review sitting against a card store.

    The session never retries a failed write. A ``ConcurrentModification``
    leaves the current card revealed so the caller can either
    ``refresh_current()`` and grade again, or ``skip_current()``.
    """

    def __init__(
        self,
        store: CardStore,
        owner: str,
        clock: Clock | None = None,
        limit: int = DEFAULT_LIMIT,
        path_id: str | None = None,
    ):
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        self.store = store
        self.owner = owner
        self.clock = clock or SystemClock()
        self.limit = limit
        self.path_id = path_id

        self.status = SessionStatus.PENDING
        self.phase: CardPhase | None = None
        self._current: Card | None = None
        self._queue: deque[Card] = deque()
        self._queued = 0
        self.graded: list[Card] = []
        self._succeeded = 0
        self._skipped = 0
        self._outcomes: dict[str, CardPhase] = {}

    @property
    def current(self) -> Card | None:
        """The card in flight, if any."""
        return self._current

    @property
    def remaining(self) -> int:
        """Cards not yet finished, including the one in flight."""
        return len(self._queue) + (1 if self._current is not None else 0)

    def start(self) -> Card | None:
        """Fetch the due batch and present its first card."""
        if self.status != SessionStatus.PENDING:
            raise InvalidTransition(f"Cannot start a session that is {self.status}")

        cards = self.store.query_due(self.owner, self.clock.now(), self.limit, self.path_id)
        self._queue = deque(cards)
        self._queued = len(cards)
        self.status = SessionStatus.ACTIVE
        logger.debug("Session for %s queued %d card(s)", self.owner, len(cards))
        return self._advance()

    def reveal(self) -> str:
        """Show the back of the current card."""
        self._require_phase(CardPhase.PRESENTING)
        self.phase = CardPhase.REVEALED
        return self._current.back

    def grade_current(self, success: bool) -> Card:
        """Grade the revealed card, persist it and move on.

        Returns the card as written to the store.

        Raises:
            InvalidTransition: if no card is currently revealed.
            ConcurrentModification: if the card changed in the store since it
                was read. Nothing is written and the card stays revealed.
        """
        self._require_phase(CardPhase.REVEALED)
        card = self._current
        updated = apply_grade(card, success, self.clock.now())

        # GRADED covers the write; a failed write puts the card back to REVEALED.
        self.phase = CardPhase.GRADED
        try:
            stored = self.store.compare_and_swap(card.id, card.version, updated)
        except RecallKitError as e:
            self.phase = CardPhase.REVEALED
            if isinstance(e, ConcurrentModification):
                logger.warning(
                    "Version conflict grading card %s: expected %d, found %d",
                    card.id,
                    e.expected_version,
                    e.actual_version,
                )
            raise

        self.graded.append(stored)
        if success:
            self._succeeded += 1
        self._outcomes[card.id] = CardPhase.DONE
        logger.debug("Committed grade for card %s at version %d", card.id, stored.version)

        self._advance()
        return stored

    def refresh_current(self) -> Card:
        """Re-read the current card from the store, picking up its latest version."""
        self._require_phase(CardPhase.PRESENTING, CardPhase.REVEALED)
        self._current = self.store.get(self.owner, self._current.id)
        return self._current

    def skip_current(self) -> Card | None:
        """Drop the current card without writing anything and present the next."""
        self._require_phase(CardPhase.PRESENTING, CardPhase.REVEALED)
        self._outcomes[self._current.id] = CardPhase.SKIPPED
        self._skipped += 1
        return self._advance()

    def phase_of(self, card_id: str) -> CardPhase | None:
        """Phase of a card in this session, or None if it was never queued here.

        Cards dropped by ``abandon()`` are forgotten and also report None.
        """
        if self._current is not None and self._current.id == card_id:
            return self.phase
        if card_id in self._outcomes:
            return self._outcomes[card_id]
        if any(card.id == card_id for card in self._queue):
            return CardPhase.QUEUED
        return None

    def abandon(self) -> None:
        """End the session now. Grades already given stay committed."""
        if self.status in (SessionStatus.FINISHED, SessionStatus.ABANDONED):
            return
        if self._current is not None:
            logger.debug("Abandoning session with card %s in flight", self._current.id)
        self._current = None
        self._queue.clear()
        self.phase = None
        self.status = SessionStatus.ABANDONED

    def summary(self) -> SessionSummary:
        return SessionSummary(
            status=self.status,
            queued=self._queued,
            graded=len(self.graded),
            succeeded=self._succeeded,
            skipped=self._skipped,
            remaining=self.remaining,
        )

    def _advance(self) -> Card | None:
        if self._queue:
            self._current = self._queue.popleft()
            self.phase = CardPhase.PRESENTING
            return self._current

        self._current = None
        self.phase = None
        self.status = SessionStatus.FINISHED
        return None

    def _require_phase(self, *phases: CardPhase) -> None:
        if self.status != SessionStatus.ACTIVE or self.phase not in phases:
            expected = " or ".join(str(p) for p in phases)
            raise InvalidTransition(
                f"Expected a card that is {expected}, session is {self.status}"
                + (f" with card {self.phase}" if self.phase else "")
            )
