"""Domain layer for Tixer.

Contains the ticket entity, query value types, validators and the error
taxonomy. This layer has no dependencies on infrastructure concerns.
"""

from .errors import (
    CounterNotFoundError,
    DeadlineExceededError,
    ErrorKind,
    InvalidTicketIdError,
    OperationCancelledError,
    StoreUnavailableError,
    TicketAlreadyExistsError,
    TicketError,
    TicketNotFoundError,
    ValidationError,
)
from .ticket import (
    PRICE_MAX,
    TITLE_MAX_LENGTH,
    Filter,
    Metadata,
    Ticket,
    TicketID,
    TicketUpdate,
    Validator,
    new_ticket_id,
    parse_ticket_id,
    validate,
    validate_price,
    validate_ticket,
    validate_title,
)

__all__ = [
    "CounterNotFoundError",
    "DeadlineExceededError",
    "ErrorKind",
    "Filter",
    "InvalidTicketIdError",
    "Metadata",
    "OperationCancelledError",
    "PRICE_MAX",
    "StoreUnavailableError",
    "TITLE_MAX_LENGTH",
    "Ticket",
    "TicketAlreadyExistsError",
    "TicketError",
    "TicketID",
    "TicketNotFoundError",
    "TicketUpdate",
    "ValidationError",
    "Validator",
    "new_ticket_id",
    "parse_ticket_id",
    "validate",
    "validate_price",
    "validate_ticket",
    "validate_title",
]
