"""
Engine error taxonomy.

These are raised inside the admission transaction so the scoped transaction
rolls back, then converted into typed results at the coordinator boundary.
Only `TransactionAborted` is retryable.
"""


class EngineError(Exception):
    """Base class for reservation engine errors."""

    error_code: str = "ENGINE_ERROR"
    retryable: bool = False


class InvalidSlotIdentifier(EngineError):
    """Malformed activity or time-slot identifier."""

    error_code = "INVALID_SLOT_IDENTIFIER"

    def __init__(self, raw: object, reason: str) -> None:
        self.raw = raw
        self.reason = reason
        super().__init__(f"Invalid slot identifier {raw!r}: {reason}")


class SlotNotFound(EngineError):
    """Identifier is well formed but resolves to no known Activity."""

    error_code = "SLOT_NOT_FOUND"

    def __init__(self, reference: object) -> None:
        self.reference = reference
        super().__init__(f"No activity found for {reference!r}")


class NoSpotsAvailable(EngineError):
    """Capacity correctly enforced: the activity is full."""

    error_code = "NO_SPOTS_AVAILABLE"

    def __init__(self, activity_id: str, capacity: int, counter: int) -> None:
        self.activity_id = activity_id
        self.capacity = capacity
        self.counter = counter
        super().__init__(
            f"No spots available for {activity_id}: {counter}/{capacity} taken"
        )


class TransactionAborted(EngineError):
    """Infrastructure contention (lock timeout, deadlock, serialization failure)."""

    error_code = "TRANSACTION_ABORTED"
    retryable = True
