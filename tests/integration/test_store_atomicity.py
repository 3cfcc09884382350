"""Atomicity, cancellation and retry tests for units of work."""

import sqlite3
from uuid import uuid4

import pytest
from sqlalchemy import delete
from sqlalchemy.exc import OperationalError

from tixer.core.context import Context
from tixer.db.models import CounterRecord
from tixer.domain import (
    CounterNotFoundError,
    DeadlineExceededError,
    ErrorKind,
    Filter,
    OperationCancelledError,
    StoreUnavailableError,
    TicketNotFoundError,
    TicketUpdate,
)
from tixer.store import RetryPolicy, TicketStore, UnitOfWork

FAST_RETRY = RetryPolicy(max_attempts=3, backoff_base=0.0, backoff_max=0.0, backoff_jitter=0.0)


def locked_error() -> OperationalError:
    return OperationalError("UPDATE ticket_counters", {}, sqlite3.OperationalError("database is locked"))


def total(store: TicketStore) -> int:
    return store.read_tickets(Context.background(), Filter(limit=1))[1].total


class TestAllOrNothing:
    """Test that ticket and counter writes commit together or not at all."""

    @pytest.mark.integration
    def test_failed_increment_leaves_no_ticket(self, store, ctx, make_ticket, monkeypatch):
        def broken_counter(self, delta):
            raise OperationalError("UPDATE", {}, sqlite3.OperationalError("disk I/O error"))

        monkeypatch.setattr(UnitOfWork, "_adjust_counter", broken_counter)
        ticket = make_ticket()

        with pytest.raises(StoreUnavailableError) as exc_info:
            store.create_ticket(ctx, ticket)

        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert exc_info.value.kind is ErrorKind.UNAVAILABLE
        monkeypatch.undo()
        with pytest.raises(TicketNotFoundError):
            store.read_ticket(ctx, ticket.id)
        assert total(store) == 0

    @pytest.mark.integration
    def test_missing_counter_on_delete_keeps_ticket(
        self, store, session_factory, ctx, make_ticket
    ):
        ticket = make_ticket()
        store.create_ticket(ctx, ticket)
        with session_factory.begin() as session:
            session.execute(delete(CounterRecord))

        with pytest.raises(CounterNotFoundError):
            store.delete_ticket(ctx, ticket.id)

        assert store.read_ticket(ctx, ticket.id).id == ticket.id

    @pytest.mark.integration
    def test_failed_decrement_keeps_ticket_and_total(self, store, ctx, make_ticket, monkeypatch):
        ticket = make_ticket()
        store.create_ticket(ctx, ticket)

        def broken_counter(self, delta):
            raise OperationalError("UPDATE", {}, sqlite3.OperationalError("disk I/O error"))

        monkeypatch.setattr(UnitOfWork, "_adjust_counter", broken_counter)
        with pytest.raises(StoreUnavailableError):
            store.delete_ticket(ctx, ticket.id)
        monkeypatch.undo()

        assert store.read_ticket(ctx, ticket.id).id == ticket.id
        assert total(store) == 1


class TestCancellation:
    """Test that cancelled operations never commit."""

    @pytest.mark.integration
    def test_cancel_before_commit_leaves_no_trace(self, store, make_ticket, monkeypatch):
        ctx = Context.background()
        original = UnitOfWork.insert_ticket

        def insert_then_cancel(self, ticket, created_at):
            record = original(self, ticket, created_at)
            ctx.cancel()
            return record

        monkeypatch.setattr(UnitOfWork, "insert_ticket", insert_then_cancel)
        ticket = make_ticket()

        with pytest.raises(OperationCancelledError):
            store.create_ticket(ctx, ticket)

        monkeypatch.undo()
        background = Context.background()
        with pytest.raises(TicketNotFoundError):
            store.read_ticket(background, ticket.id)
        assert total(store) == 0

    @pytest.mark.integration
    def test_expired_deadline_stops_before_any_write(self, store, make_ticket):
        ctx = Context.with_timeout(0)
        ticket = make_ticket()

        with pytest.raises(DeadlineExceededError):
            store.create_ticket(ctx, ticket)

        assert total(store) == 0

    @pytest.mark.integration
    def test_cancelled_update_keeps_previous_values(self, store, ctx, make_ticket, monkeypatch):
        ticket = make_ticket(title="Before")
        store.create_ticket(ctx, ticket)
        update_ctx = Context.background()
        original = UnitOfWork.apply_update

        def update_then_cancel(self, record, update, updated_at):
            original(self, record, update, updated_at)
            update_ctx.cancel()

        monkeypatch.setattr(UnitOfWork, "apply_update", update_then_cancel)
        with pytest.raises(OperationCancelledError):
            store.update_ticket(update_ctx, TicketUpdate(id=ticket.id, title="After"))
        monkeypatch.undo()

        stored = store.read_ticket(ctx, ticket.id)
        assert stored.title == "Before"
        assert stored.date_updated is None


class TestConflictRetry:
    """Test bounded retry of write conflicts."""

    @pytest.mark.integration
    def test_conflict_is_retried_until_success(self, session_factory, ctx, make_ticket, monkeypatch):
        store = TicketStore(session_factory, retry_policy=FAST_RETRY)
        store.initialize(ctx)
        original = UnitOfWork._adjust_counter
        calls = {"count": 0}

        def flaky_counter(self, delta):
            calls["count"] += 1
            if calls["count"] < 3:
                raise locked_error()
            original(self, delta)

        monkeypatch.setattr(UnitOfWork, "_adjust_counter", flaky_counter)
        ticket = make_ticket()
        store.create_ticket(ctx, ticket)
        monkeypatch.undo()

        assert calls["count"] == 3
        assert store.read_ticket(ctx, ticket.id).id == ticket.id
        assert total(store) == 1

    @pytest.mark.integration
    def test_exhausted_retries_are_unavailable(self, session_factory, ctx, make_ticket, monkeypatch):
        store = TicketStore(session_factory, retry_policy=FAST_RETRY)
        store.initialize(ctx)
        calls = {"count": 0}

        def always_locked(self, delta):
            calls["count"] += 1
            raise locked_error()

        monkeypatch.setattr(UnitOfWork, "_adjust_counter", always_locked)
        ticket = make_ticket()
        with pytest.raises(StoreUnavailableError) as exc_info:
            store.create_ticket(ctx, ticket)
        monkeypatch.undo()

        assert calls["count"] == FAST_RETRY.max_attempts
        assert isinstance(exc_info.value.__cause__, OperationalError)
        with pytest.raises(TicketNotFoundError):
            store.read_ticket(ctx, ticket.id)

    @pytest.mark.integration
    def test_domain_errors_are_not_retried(self, session_factory, ctx, monkeypatch):
        store = TicketStore(session_factory, retry_policy=FAST_RETRY)
        store.initialize(ctx)
        original = UnitOfWork.get_ticket
        calls = {"count": 0}

        def counting_get(self, ticket_id, for_update=False):
            calls["count"] += 1
            return original(self, ticket_id, for_update)

        monkeypatch.setattr(UnitOfWork, "get_ticket", counting_get)
        with pytest.raises(TicketNotFoundError):
            store.delete_ticket(ctx, uuid4())

        assert calls["count"] == 1
