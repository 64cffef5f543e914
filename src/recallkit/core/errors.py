"""Exceptions raised by the recallkit core."""


class RecallKitError(Exception):
    """Base exception for all recallkit errors."""


class InvalidState(RecallKitError):
    """Raised when a card violates its invariants."""


class InvalidTransition(RecallKitError):
    """Raised when a review session operation is invoked out of sequence."""


class NotFound(RecallKitError):
    """Raised when a card does not exist or belongs to another owner."""

    def __init__(self, card_id: str):
        super().__init__(f"Card not found: {card_id}")
        self.card_id = card_id


class CardAlreadyExists(RecallKitError):
    """Raised when creating a card whose id is already stored."""

    def __init__(self, card_id: str):
        super().__init__(f"Card already exists: {card_id}")
        self.card_id = card_id


class ConcurrentModification(RecallKitError):
    """Raised when a compare-and-swap write finds a different stored version.

    The stored card is left untouched. Callers recover by re-fetching the
    card and retrying, or by skipping it.
    """

    def __init__(self, card_id: str, expected_version: int, actual_version: int):
        super().__init__(
            f"Card {card_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.card_id = card_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class ConfigurationError(RecallKitError):
    """Raised when environment settings cannot be parsed."""
