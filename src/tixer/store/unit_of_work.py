"""
Units of work against the backing store.

A ``UnitOfWork`` wraps one database transaction for one ticket collection.
It is the only code path that writes the counter aggregate, and it only
does so together with the ticket write it accounts for: ``insert_ticket``
increments, ``remove_ticket`` decrements. ``TransactionRunner`` opens the
transaction, commits or rolls it back, and retries the whole unit of work
when it loses a write conflict.
"""

import time
from typing import Callable, Optional, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..core.context import Context
from ..db.models import CounterRecord, TicketRecord
from ..domain import (
    CounterNotFoundError,
    StoreUnavailableError,
    Ticket,
    TicketAlreadyExistsError,
    TicketID,
    TicketUpdate,
)
from ..utils.logging_config import get_logger, log_exception
from .integrity_policy import (
    ExpectedIntegrityTag,
    classify_integrity_error,
    is_write_conflict,
    log_expected_violation,
    log_unexpected_violation,
)
from .retry import RetryPolicy

logger = get_logger("store")

T = TypeVar("T")


class UnitOfWork:
    """Reads and paired writes executed inside one transaction."""

    def __init__(
        self,
        session: Session,
        ctx: Context,
        operation: str,
        collection: str,
        counter_id: str,
    ):
        self._session = session
        self._ctx = ctx
        self.operation = operation
        self.collection = collection
        self.counter_id = counter_id

    def checkpoint(self) -> None:
        """Abort the unit of work if the caller cancelled or ran out of time."""
        self._ctx.check(self.operation)

    def get_ticket(self, ticket_id: TicketID, for_update: bool = False) -> Optional[TicketRecord]:
        self.checkpoint()
        stmt = select(TicketRecord).where(
            TicketRecord.collection == self.collection,
            TicketRecord.id == ticket_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self._session.execute(stmt).scalar_one_or_none()

    def get_counter(self) -> Optional[CounterRecord]:
        self.checkpoint()
        return self._session.get(CounterRecord, (self.collection, self.counter_id))

    def provision_counter(self) -> CounterRecord:
        """Create the counter with a zero total unless it already exists."""
        counter = self.get_counter()
        if counter is None:
            counter = CounterRecord(
                collection=self.collection, id=self.counter_id, total_tickets=0
            )
            self._session.add(counter)
            self._session.flush()
        return counter

    def insert_ticket(self, ticket: Ticket, created_at) -> TicketRecord:
        """Insert a ticket and increment the counter.

        Raises:
            TicketAlreadyExistsError: If a ticket with the same ID exists.
        """
        self.checkpoint()
        record = TicketRecord(
            id=ticket.id,
            collection=self.collection,
            title=ticket.title,
            price=ticket.price,
            date_created=created_at,
            date_updated=None,
        )
        self._session.add(record)
        try:
            self._session.flush()
        except IntegrityError as exc:
            if classify_integrity_error(exc) is ExpectedIntegrityTag.TICKET_ALREADY_EXISTS:
                log_expected_violation(
                    ExpectedIntegrityTag.TICKET_ALREADY_EXISTS,
                    exc,
                    self._log_context(ticket.id),
                )
                raise TicketAlreadyExistsError(ticket.id) from exc
            raise

        self._adjust_counter(1)
        return record

    def remove_ticket(self, record: TicketRecord) -> None:
        """Delete a ticket and decrement the counter.

        Raises:
            CounterNotFoundError: If the counter aggregate is missing.
        """
        self.checkpoint()
        self._session.delete(record)
        self._session.flush()
        self._adjust_counter(-1)

    def apply_update(self, record: TicketRecord, update: TicketUpdate, updated_at) -> None:
        """Write the supplied fields and the new update timestamp."""
        self.checkpoint()
        for name, value in update.changes.items():
            setattr(record, name, value)
        record.date_updated = updated_at
        self._session.flush()

    def _adjust_counter(self, delta: int) -> None:
        self.checkpoint()
        result = self._session.execute(
            update(CounterRecord)
            .where(
                CounterRecord.collection == self.collection,
                CounterRecord.id == self.counter_id,
            )
            .values(total_tickets=CounterRecord.total_tickets + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return

        if delta < 0:
            raise CounterNotFoundError(self.collection, self.counter_id)

        # First ticket of the collection provisions the counter
        logger.info(
            "Provisioning counter with first ticket",
            extra={"collection": self.collection, "counter_id": self.counter_id},
        )
        self._session.add(
            CounterRecord(collection=self.collection, id=self.counter_id, total_tickets=delta)
        )
        self._session.flush()

    def _log_context(self, entity_id) -> dict:
        return {
            "operation": self.operation,
            "entity_id": str(entity_id),
            "collection": self.collection,
        }


class TransactionRunner:
    """Runs callables as units of work with commit, rollback and conflict retry."""

    def __init__(
        self,
        session_factory: sessionmaker,
        collection: str,
        counter_id: str,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self.collection = collection
        self.counter_id = counter_id
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    def run(self, ctx: Context, operation: str, work: Callable[[UnitOfWork], T]) -> T:
        """Execute ``work`` atomically and return its result.

        Nothing is committed unless ``work`` returns and the context is still
        live right before commit. Write conflicts restart ``work`` in a fresh
        transaction, up to ``retry_policy.max_attempts`` attempts.

        Raises:
            TicketError: Whatever domain error ``work`` raised, after rollback.
            OperationCancelledError: If the context was cancelled or expired.
            StoreUnavailableError: On any other backing store failure.
        """
        attempt = 0
        while True:
            ctx.check(operation)
            session = self._session_factory()
            try:
                with session.begin():
                    uow = UnitOfWork(session, ctx, operation, self.collection, self.counter_id)
                    result = work(uow)
                    uow.checkpoint()
                return result
            except SQLAlchemyError as exc:
                if not is_write_conflict(exc):
                    if isinstance(exc, IntegrityError):
                        log_unexpected_violation(
                            exc, {"operation": operation, "collection": self.collection}
                        )
                    else:
                        log_exception("store", exc, {"operation": operation})
                    raise StoreUnavailableError(operation, type(exc).__name__) from exc

                attempt += 1
                if attempt >= self.retry_policy.max_attempts:
                    logger.warning(
                        f"{operation} gave up after {attempt} conflicting attempts",
                        extra={"collection": self.collection},
                    )
                    raise StoreUnavailableError(
                        operation, f"write conflict persisted after {attempt} attempts"
                    ) from exc

                delay = self.retry_policy.delay(attempt - 1, ctx.remaining())
                logger.debug(
                    f"{operation} hit a write conflict, retrying in {delay:.3f}s "
                    f"(attempt {attempt + 1}/{self.retry_policy.max_attempts})"
                )
                self._sleep(delay)
            finally:
                session.close()

    def read(self, ctx: Context, operation: str, work: Callable[[Session], T]) -> T:
        """Execute read-only ``work`` on a fresh session, without retry."""
        ctx.check(operation)
        session = self._session_factory()
        try:
            result = work(session)
        except SQLAlchemyError as exc:
            log_exception("store", exc, {"operation": operation})
            raise StoreUnavailableError(operation, type(exc).__name__) from exc
        finally:
            session.close()
        ctx.check(operation)
        return result
