"""In-process registry of live review sessions."""

import logging
import threading
from collections import OrderedDict
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from uuid import uuid4

from recallkit.core.session import ReviewSession

logger = logging.getLogger(__name__)

DEFAULT_MAX_SESSIONS = 1000


@dataclass
class _Entry:
    session: ReviewSession
    lock: threading.Lock = field(default_factory=threading.Lock)


class SessionRegistry:
    """Keeps review sessions between HTTP requests.

    Each session has its own lock, held only while one request operates on it.
    When the registry exceeds ``max_size`` the least recently used sessions are
    evicted. Evicting a session writes nothing, the same as abandoning it.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SESSIONS):
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._max_size = max_size
        self._lock = threading.Lock()

    def add(self, session: ReviewSession) -> str:
        session_id = uuid4().hex
        with self._lock:
            self._entries[session_id] = _Entry(session)

            # Evict oldest sessions if over capacity
            while len(self._entries) > self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.info("Evicted idle session %s", evicted)
        return session_id

    @contextmanager
    def hold(self, owner: str, session_id: str) -> Iterator[ReviewSession | None]:
        """Yield the owner's session with its lock held, or None if unknown."""
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is not None:
                self._entries.move_to_end(session_id)
        if entry is None or entry.session.owner != owner:
            yield None
            return
        with entry.lock:
            yield entry.session

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._entries.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
