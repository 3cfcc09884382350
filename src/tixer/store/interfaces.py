"""Service contract consumed by the presentation layer."""

from abc import ABC, abstractmethod
from typing import List, Tuple

from ..core.context import Context
from ..domain import Filter, Metadata, Ticket, TicketID, TicketUpdate


class TicketService(ABC):
    """Interface for ticket persistence operations.

    Every operation takes the caller's ``Context`` first and raises a
    ``TicketError`` subclass carrying one ``ErrorKind`` on failure.
    """

    @abstractmethod
    def create_ticket(self, ctx: Context, ticket: Ticket) -> None:
        """Persist a new ticket and count it.

        Raises:
            TicketAlreadyExistsError: If ``ticket.id`` is already taken.
        """

    @abstractmethod
    def read_ticket(self, ctx: Context, ticket_id: TicketID) -> Ticket:
        """Return a ticket by ID.

        Raises:
            TicketNotFoundError: If the ticket does not exist.
        """

    @abstractmethod
    def update_ticket(self, ctx: Context, update: TicketUpdate) -> Ticket:
        """Apply a partial update and return the ticket as read afterwards.

        Raises:
            TicketNotFoundError: If the ticket does not exist.
        """

    @abstractmethod
    def delete_ticket(self, ctx: Context, ticket_id: TicketID) -> None:
        """Delete a ticket and uncount it.

        Raises:
            TicketNotFoundError: If the ticket does not exist.
        """

    @abstractmethod
    def read_tickets(self, ctx: Context, filter: Filter) -> Tuple[List[Ticket], Metadata]:
        """Return one page of tickets, newest first, with its boundary cursors.

        Raises:
            TicketNotFoundError: If a cursor does not resolve to a ticket.
            CounterNotFoundError: If the counter aggregate is missing.
        """
