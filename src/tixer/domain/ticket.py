"""Ticket entity, query value types and field validators.

This module has no I/O. The presentation layer validates tickets here before
handing them to the store; the store only checks structural preconditions.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Union
from uuid import UUID, uuid4

from .errors import InvalidTicketIdError, ValidationError

TicketID = UUID

TITLE_MAX_LENGTH = 50
PRICE_MAX = 100_000


def new_ticket_id() -> TicketID:
    """Generate a new random ticket identifier."""
    return uuid4()


def parse_ticket_id(value: str, key: str = "id") -> TicketID:
    """Parse the canonical text form of a ticket ID."""
    try:
        return UUID(value)
    except (ValueError, TypeError, AttributeError):
        raise InvalidTicketIdError(str(value), key=key) from None


@dataclass(frozen=True)
class Ticket:
    """A ticket as persisted by the store.

    ``date_created`` is assigned by the store on creation and ``date_updated``
    stays ``None`` until the first update.
    """

    id: TicketID
    title: str
    price: float
    date_created: Optional[datetime] = None
    date_updated: Optional[datetime] = None


@dataclass(frozen=True)
class TicketUpdate:
    """Partial update of a ticket. ``None`` fields are left unchanged."""

    id: TicketID
    title: Optional[str] = None
    price: Optional[float] = None

    @property
    def changes(self) -> Dict[str, Union[str, float]]:
        """Return the supplied business fields keyed by attribute name."""
        fields: Dict[str, Union[str, float]] = {}
        if self.title is not None:
            fields["title"] = self.title
        if self.price is not None:
            fields["price"] = self.price
        return fields


@dataclass(frozen=True)
class Filter:
    """Page request for ``read_tickets``.

    ``after`` and ``before`` are optional cursors; an unset cursor means no
    bound on that side of the page.
    """

    limit: int
    after: Optional[TicketID] = None
    before: Optional[TicketID] = None

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 1:
            raise ValueError("Filter limit must be a positive integer")


@dataclass(frozen=True)
class Metadata:
    """Boundary cursors of a returned page plus the current ticket total."""

    total: int
    after: Optional[TicketID] = None
    before: Optional[TicketID] = None


class Validator:
    """Collects field errors, keeping the first message reported per field."""

    def __init__(self) -> None:
        self.errors: Dict[str, str] = {}

    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        self.errors.setdefault(key, message)

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ValidationError(self.errors)


TicketFields = Union[Ticket, TicketUpdate]


def validate_title(ticket: TicketFields, validator: Validator) -> None:
    title = ticket.title or ""
    validator.check(title != "", "title", "must be provided")
    validator.check(
        len(title) <= TITLE_MAX_LENGTH,
        "title",
        f"must not be longer than {TITLE_MAX_LENGTH} characters",
    )


def validate_price(ticket: TicketFields, validator: Validator) -> None:
    price = ticket.price
    validator.check(
        price is not None and 0 < price <= PRICE_MAX,
        "price",
        "must be in the range (0, 100 000]",
    )


def validate_ticket(ticket: TicketFields, validator: Validator) -> None:
    validate_title(ticket, validator)
    validate_price(ticket, validator)


def validate(ticket: TicketFields) -> None:
    """Validate every field of ``ticket``.

    Raises:
        ValidationError: If the title or the price is out of bounds.
    """
    validator = Validator()
    validate_ticket(ticket, validator)
    validator.raise_for_errors()
