"""
Ticket store backed by SQLAlchemy.

Tickets of one collection and the counter aggregate of that collection live
in the same database, so every write that changes the number of tickets runs
in one transaction with the matching counter update.
"""

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, sessionmaker

from ..core.context import Context
from ..db.models import CounterRecord, TicketRecord
from ..domain import (
    CounterNotFoundError,
    Filter,
    Metadata,
    Ticket,
    TicketID,
    TicketNotFoundError,
    TicketUpdate,
    ValidationError,
)
from ..utils.logging_config import get_logger
from .clock import MonotonicClock
from .interfaces import TicketService
from .retry import RetryPolicy
from .unit_of_work import TransactionRunner, UnitOfWork

logger = get_logger("store")

DEFAULT_COLLECTION = "tickets"
DEFAULT_COUNTER_ID = "--counter--"


def to_ticket(record: TicketRecord) -> Ticket:
    """Convert a stored row into a domain ticket."""
    return Ticket(
        id=record.id,
        title=record.title,
        price=record.price,
        date_created=record.date_created,
        date_updated=record.date_updated,
    )


def _check_counter_id(counter_id: str) -> None:
    try:
        UUID(counter_id)
    except ValueError:
        return
    raise ValueError(f"counter id {counter_id!r} must not be a valid ticket ID")


class TicketStore(TicketService):
    """Transactional ticket store for one collection."""

    def __init__(
        self,
        session_factory: sessionmaker,
        collection: str = DEFAULT_COLLECTION,
        counter_id: str = DEFAULT_COUNTER_ID,
        clock: Optional[MonotonicClock] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        if not collection:
            raise ValueError("collection must not be empty")
        if not counter_id:
            raise ValueError("counter id must not be empty")
        _check_counter_id(counter_id)

        self.collection = collection
        self.counter_id = counter_id
        self.clock = clock or MonotonicClock()
        self._runner = TransactionRunner(
            session_factory, collection, counter_id, retry_policy=retry_policy
        )

    def initialize(self, ctx: Context) -> int:
        """Provision the counter with a zero total if it is absent.

        Returns the current total.
        """
        counter = self._runner.run(ctx, "initialize", lambda uow: uow.provision_counter())
        logger.info(
            f"Counter ready for collection '{self.collection}' "
            f"(total_tickets={counter.total_tickets})"
        )
        return counter.total_tickets

    def create_ticket(self, ctx: Context, ticket: Ticket) -> None:
        if ticket.id is None:
            raise ValidationError({"id": "must be provided"})

        def work(uow: UnitOfWork) -> None:
            uow.insert_ticket(ticket, self.clock.now())

        self._runner.run(ctx, "create_ticket", work)
        logger.info(f"Created ticket {ticket.id}")

    def read_ticket(self, ctx: Context, ticket_id: TicketID) -> Ticket:
        def work(session: Session) -> Optional[Ticket]:
            record = self._select_ticket(session, ticket_id)
            return to_ticket(record) if record is not None else None

        ticket = self._runner.read(ctx, "read_ticket", work)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    def update_ticket(self, ctx: Context, update: TicketUpdate) -> Ticket:
        def work(uow: UnitOfWork) -> None:
            record = uow.get_ticket(update.id, for_update=True)
            if record is None:
                raise TicketNotFoundError(update.id)
            uow.apply_update(record, update, self.clock.now())

        self._runner.run(ctx, "update_ticket", work)
        logger.info(f"Updated ticket {update.id} fields={sorted(update.changes)}")

        # Returned state is read after commit and may include later writes
        return self.read_ticket(ctx, update.id)

    def delete_ticket(self, ctx: Context, ticket_id: TicketID) -> None:
        def work(uow: UnitOfWork) -> None:
            record = uow.get_ticket(ticket_id, for_update=True)
            if record is None:
                raise TicketNotFoundError(ticket_id)
            uow.remove_ticket(record)

        self._runner.run(ctx, "delete_ticket", work)
        logger.info(f"Deleted ticket {ticket_id}")

    def read_tickets(self, ctx: Context, filter: Filter) -> Tuple[List[Ticket], Metadata]:
        def work(session: Session) -> Tuple[List[Ticket], Metadata]:
            stmt = (
                select(TicketRecord)
                .where(TicketRecord.collection == self.collection)
                .order_by(TicketRecord.date_created.desc(), TicketRecord.id.desc())
            )

            if filter.after is not None:
                cursor = self._resolve_cursor(session, filter.after)
                stmt = stmt.where(
                    or_(
                        TicketRecord.date_created < cursor.date_created,
                        and_(
                            TicketRecord.date_created == cursor.date_created,
                            TicketRecord.id < cursor.id,
                        ),
                    )
                )

            if filter.before is not None:
                cursor = self._resolve_cursor(session, filter.before)
                stmt = stmt.where(
                    or_(
                        TicketRecord.date_created > cursor.date_created,
                        and_(
                            TicketRecord.date_created == cursor.date_created,
                            TicketRecord.id > cursor.id,
                        ),
                    )
                )

            ctx.check("read_tickets")
            records = session.execute(stmt.limit(filter.limit)).scalars().all()
            tickets = [to_ticket(record) for record in records]

            ctx.check("read_tickets")
            counter = session.get(CounterRecord, (self.collection, self.counter_id))
            if counter is None:
                raise CounterNotFoundError(self.collection, self.counter_id)

            metadata = Metadata(
                total=counter.total_tickets,
                before=tickets[0].id if tickets else None,
                after=tickets[-1].id if tickets else None,
            )
            return tickets, metadata

        tickets, metadata = self._runner.read(ctx, "read_tickets", work)
        logger.debug(
            f"Read {len(tickets)} tickets (limit={filter.limit}, "
            f"after={filter.after}, before={filter.before}, total={metadata.total})"
        )
        return tickets, metadata

    def _select_ticket(self, session: Session, ticket_id: TicketID) -> Optional[TicketRecord]:
        return session.execute(
            select(TicketRecord).where(
                TicketRecord.collection == self.collection,
                TicketRecord.id == ticket_id,
            )
        ).scalar_one_or_none()

    def _resolve_cursor(self, session: Session, ticket_id: TicketID) -> TicketRecord:
        record = self._select_ticket(session, ticket_id)
        if record is None:
            raise TicketNotFoundError(ticket_id)
        return record
