"""Error taxonomy shared by the domain model, the store and the HTTP layer.

Every error raised by the ticket store carries exactly one ``ErrorKind`` so
the presentation layer can map it to a response without inspecting messages.
"""

from enum import Enum
from typing import Dict, Optional
from uuid import UUID


class ErrorKind(Enum):
    """Kinds of failures a ticket operation can report."""

    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    COUNTER_NOT_FOUND = "counter_not_found"
    VALIDATION = "validation"
    UNAVAILABLE = "unavailable"
    CANCELLED = "cancelled"


class TicketError(Exception):
    """Base exception for ticket operations."""

    kind: ErrorKind = ErrorKind.UNAVAILABLE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class TicketNotFoundError(TicketError):
    """Raised when a ticket (or a cursor ticket) does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, ticket_id: UUID):
        super().__init__(f"ticket {ticket_id} not found")
        self.ticket_id = ticket_id


class TicketAlreadyExistsError(TicketError):
    """Raised when a ticket is created with an ID that is already taken."""

    kind = ErrorKind.ALREADY_EXISTS

    def __init__(self, ticket_id: UUID):
        super().__init__(f"ticket {ticket_id} already exists")
        self.ticket_id = ticket_id


class CounterNotFoundError(TicketError):
    """Raised when the counter aggregate of a collection is missing.

    This signals a misconfigured or corrupted store, not a missing ticket.
    """

    kind = ErrorKind.COUNTER_NOT_FOUND

    def __init__(self, collection: str, counter_id: str):
        super().__init__(f"counter {counter_id!r} not found in collection {collection!r}")
        self.collection = collection
        self.counter_id = counter_id


class ValidationError(TicketError):
    """Raised when ticket fields violate their constraints."""

    kind = ErrorKind.VALIDATION

    def __init__(self, errors: Dict[str, str]):
        details = ", ".join(f"{key} {message}" for key, message in errors.items())
        super().__init__(f"validation failed: {details}")
        self.errors = dict(errors)


class InvalidTicketIdError(ValidationError):
    """Raised when a ticket ID is not a well-formed UUID."""

    def __init__(self, value: str, key: str = "id"):
        super().__init__({key: "must be a valid UUID"})
        self.value = value


class StoreUnavailableError(TicketError):
    """Raised when the backing store fails for reasons outside the domain.

    The original database exception is chained as ``__cause__``.
    """

    kind = ErrorKind.UNAVAILABLE

    def __init__(self, operation: str, reason: Optional[str] = None):
        message = f"store unavailable during {operation}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.operation = operation


class OperationCancelledError(TicketError):
    """Raised when the caller cancelled an operation before it finished."""

    kind = ErrorKind.CANCELLED

    def __init__(self, operation: str, message: Optional[str] = None):
        super().__init__(message or f"{operation} cancelled")
        self.operation = operation


class DeadlineExceededError(OperationCancelledError):
    """Raised when the caller's deadline passed before an operation finished."""

    def __init__(self, operation: str):
        super().__init__(operation, f"{operation} deadline exceeded")
