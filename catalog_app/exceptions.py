"""
Errors raised by the ordering and grouping services.
Views map them to a single failure response; nothing here is retried.
"""


class OrderingError(Exception):
    """Base class for catalog ordering failures."""


class InvalidOrderError(OrderingError, ValueError):
    """Rejected input (bad permutation, unknown id, bad rank). Nothing was written."""


class UnknownGroupError(InvalidOrderError):
    def __init__(self, key):
        super().__init__(f"Unknown variation group: {key!r}")
        self.key = key


class ConfirmationRequired(OrderingError):
    """Irreversible operation attempted without explicit confirmation."""


class PersistenceError(OrderingError):
    """A write to the backing store failed; callers must re-read the collection."""
