"""Custom exceptions for todograph.

Internals raise these; the public operation layer converts them into
result values (see ``todograph.models.results``).
"""


class TodographError(Exception):
    """Base exception for all todograph errors."""


class ValidationError(TodographError):
    """Raised for a bad reference, cycle, cross-list violation or empty input."""


class NotFoundError(TodographError):
    """Raised when a referenced task or list does not exist."""

    def __init__(self, item_id: str, kind: str = "task"):
        super().__init__(f"{kind.capitalize()} '{item_id}' not found")
        self.item_id = item_id
        self.kind = kind


class NoChangeError(TodographError):
    """Raised when an operation would not change anything."""


class ConsistencyError(TodographError):
    """Raised when persisted undo history no longer matches the store."""


class ConcurrencyError(TodographError):
    """Raised when the store stays locked after all retries."""
