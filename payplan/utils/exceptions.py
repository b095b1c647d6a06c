"""
Compensation exceptions.

Defines the error types raised by the compensation engine.
Not-eligible nodes are reported as outcomes, never raised.
"""


class CompensationError(Exception):
    """Base class for compensation engine errors."""
    pass


class ValidationError(CompensationError):
    """Raised when an input is rejected before any state changes."""
    pass


class TreeIntegrityError(CompensationError):
    """Raised when a sponsor or placement edge would break the tree."""
    pass


class CreditFailure(CompensationError):
    """Raised when the wallet rejects or fails a credit."""

    def __init__(self, reference_id: str, reason: str) -> None:
        self.reference_id = reference_id
        self.reason = reason
        super().__init__(f"Credit {reference_id} failed: {reason}")


class LockNotAcquiredError(CompensationError):
    """Raised when another process holds the run lease."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Lock '{key}' is held by another process")
