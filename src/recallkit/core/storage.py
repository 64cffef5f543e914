"""Card stores: the persistence contract and its implementations.

Every write goes through ``compare_and_swap`` conditioned on the version the
caller read, so two devices reviewing the same card cannot overwrite each
other's grades.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from recallkit.core.errors import (
    CardAlreadyExists,
    ConcurrentModification,
    InvalidState,
    NotFound,
)
from recallkit.core.models import Card, as_utc, check_invariants
from recallkit.core.scheduler import due_sort_key

logger = logging.getLogger(__name__)


class CardStore(ABC):
    """Persistence contract used by review sessions."""

    @abstractmethod
    def create(self, card: Card) -> Card:
        """Store a new card.

        Raises:
            InvalidState: if the card breaks an invariant.
            CardAlreadyExists: if the id is already stored.
        """

    @abstractmethod
    def get(self, owner: str, card_id: str) -> Card:
        """Load one card.

        Raises:
            NotFound: if the card is missing or belongs to another owner.
        """

    @abstractmethod
    def query_due(
        self,
        owner: str,
        now: datetime,
        limit: int,
        path_id: str | None = None,
    ) -> list[Card]:
        """Cards due at ``now``, never-scheduled first, then oldest due, then id."""

    @abstractmethod
    def compare_and_swap(self, card_id: str, expected_version: int, new_card: Card) -> Card:
        """Replace a card only if its stored version is ``expected_version``.

        Raises:
            NotFound: if no card has this id.
            ConcurrentModification: if the stored version differs.
            InvalidState: if ``new_card`` is not a valid successor.
        """

    @abstractmethod
    def list_cards(self, owner: str, path_id: str | None = None) -> list[Card]:
        """All of an owner's cards, oldest first."""

    @staticmethod
    def _check_limit(limit: int) -> None:
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")

    @staticmethod
    def _check_successor(card_id: str, expected_version: int, new_card: Card) -> None:
        check_invariants(new_card)
        if new_card.id != card_id:
            raise InvalidState(f"Cannot swap card {card_id} with card {new_card.id}")
        if new_card.version <= expected_version:
            raise InvalidState(
                f"Card {card_id}: new version {new_card.version} does not "
                f"increase on {expected_version}"
            )


class InMemoryCardStore(CardStore):
    """Dict-backed store, safe to share between threads."""

    def __init__(self, cards: list[Card] | None = None):
        self._cards: dict[str, Card] = {}
        self._lock = threading.Lock()
        for card in cards or []:
            self.create(card)

    def create(self, card: Card) -> Card:
        check_invariants(card)
        with self._lock:
            if card.id in self._cards:
                raise CardAlreadyExists(card.id)
            self._cards[card.id] = card
        logger.debug("Created card %s for %s", card.id, card.owner)
        return card

    def get(self, owner: str, card_id: str) -> Card:
        with self._lock:
            card = self._cards.get(card_id)
        if card is None or card.owner != owner:
            raise NotFound(card_id)
        return card

    def query_due(
        self,
        owner: str,
        now: datetime,
        limit: int,
        path_id: str | None = None,
    ) -> list[Card]:
        self._check_limit(limit)
        with self._lock:
            cards = list(self._cards.values())
        due = [
            c
            for c in cards
            if c.owner == owner and (path_id is None or c.path_id == path_id) and c.is_due(now)
        ]
        due.sort(key=due_sort_key)
        return due[:limit]

    def compare_and_swap(self, card_id: str, expected_version: int, new_card: Card) -> Card:
        self._check_successor(card_id, expected_version, new_card)
        with self._lock:
            stored = self._cards.get(card_id)
            if stored is None:
                raise NotFound(card_id)
            if stored.owner != new_card.owner:
                raise InvalidState(f"Card {card_id}: owner cannot change")
            if stored.version != expected_version:
                raise ConcurrentModification(card_id, expected_version, stored.version)
            self._cards[card_id] = new_card
        return new_card

    def list_cards(self, owner: str, path_id: str | None = None) -> list[Card]:
        with self._lock:
            cards = list(self._cards.values())
        cards = [c for c in cards if c.owner == owner and (path_id is None or c.path_id == path_id)]
        cards.sort(key=lambda c: (c.created_at, c.id))
        return cards


def _to_db(value: datetime | None) -> str | None:
    """Fixed-width UTC text so timestamps sort lexically."""
    if value is None:
        return None
    return as_utc(value).isoformat(timespec="microseconds")


def _from_db(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteCardStore(CardStore):
    """SQLite database of cards and their scheduling state."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS cards (
                    id TEXT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    front TEXT NOT NULL,
                    back TEXT NOT NULL,
                    path_id TEXT,
                    difficulty INTEGER NOT NULL DEFAULT 1,
                    review_count INTEGER NOT NULL DEFAULT 0,
                    success_count INTEGER NOT NULL DEFAULT 0,
                    last_reviewed TEXT,
                    next_due TEXT,
                    version INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_cards_owner_due ON cards(owner, next_due);
            """
            )

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _row_to_card(row: sqlite3.Row) -> Card:
        return Card(
            id=row["id"],
            owner=row["owner"],
            front=row["front"],
            back=row["back"],
            path_id=row["path_id"],
            difficulty=row["difficulty"],
            review_count=row["review_count"],
            success_count=row["success_count"],
            last_reviewed=_from_db(row["last_reviewed"]),
            next_due=_from_db(row["next_due"]),
            version=row["version"],
            created_at=_from_db(row["created_at"]),
        )

    def create(self, card: Card) -> Card:
        check_invariants(card)
        try:
            with self._connection() as conn:
                conn.execute(
                    """
                    INSERT INTO cards (
                        id, owner, front, back, path_id, difficulty, review_count,
                        success_count, last_reviewed, next_due, version, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        card.id,
                        card.owner,
                        card.front,
                        card.back,
                        card.path_id,
                        card.difficulty,
                        card.review_count,
                        card.success_count,
                        _to_db(card.last_reviewed),
                        _to_db(card.next_due),
                        card.version,
                        _to_db(card.created_at),
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise CardAlreadyExists(card.id) from e
        logger.debug("Created card %s for %s", card.id, card.owner)
        return card

    def get(self, owner: str, card_id: str) -> Card:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM cards WHERE id = ? AND owner = ?", (card_id, owner)
            ).fetchone()
        if row is None:
            raise NotFound(card_id)
        return self._row_to_card(row)

    def query_due(
        self,
        owner: str,
        now: datetime,
        limit: int,
        path_id: str | None = None,
    ) -> list[Card]:
        self._check_limit(limit)
        sql = "SELECT * FROM cards WHERE owner = ? AND (next_due IS NULL OR next_due <= ?)"
        params: list = [owner, _to_db(now)]
        if path_id is not None:
            sql += " AND path_id = ?"
            params.append(path_id)
        sql += " ORDER BY next_due ASC NULLS FIRST, id ASC LIMIT ?"
        params.append(limit)

        with self._connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_card(row) for row in rows]

    def compare_and_swap(self, card_id: str, expected_version: int, new_card: Card) -> Card:
        self._check_successor(card_id, expected_version, new_card)
        with self._connection() as conn:
            cursor = conn.execute(
                """
                UPDATE cards SET
                    front = ?,
                    back = ?,
                    path_id = ?,
                    difficulty = ?,
                    review_count = ?,
                    success_count = ?,
                    last_reviewed = ?,
                    next_due = ?,
                    version = ?
                WHERE id = ? AND owner = ? AND version = ?
            """,
                (
                    new_card.front,
                    new_card.back,
                    new_card.path_id,
                    new_card.difficulty,
                    new_card.review_count,
                    new_card.success_count,
                    _to_db(new_card.last_reviewed),
                    _to_db(new_card.next_due),
                    new_card.version,
                    card_id,
                    new_card.owner,
                    expected_version,
                ),
            )
            if cursor.rowcount == 1:
                return new_card

            row = conn.execute(
                "SELECT owner, version FROM cards WHERE id = ?", (card_id,)
            ).fetchone()
        if row is None:
            raise NotFound(card_id)
        if row["owner"] != new_card.owner:
            raise InvalidState(f"Card {card_id}: owner cannot change")
        raise ConcurrentModification(card_id, expected_version, row["version"])

    def list_cards(self, owner: str, path_id: str | None = None) -> list[Card]:
        sql = "SELECT * FROM cards WHERE owner = ?"
        params: list = [owner]
        if path_id is not None:
            sql += " AND path_id = ?"
            params.append(path_id)
        sql += " ORDER BY created_at ASC, id ASC"

        with self._connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_card(row) for row in rows]
