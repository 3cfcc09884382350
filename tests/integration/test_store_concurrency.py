"""Concurrent store operations from several threads.

Every thread uses the shared store; the store opens its own session per unit
of work, so these tests exercise SQLite locking and the conflict retry.
"""

from typing import List
from uuid import uuid4

import pytest

from tixer.core.context import Context
from tixer.domain import Filter, Ticket, TicketNotFoundError, TicketUpdate
from tixer.store import RetryPolicy, TicketStore
from tests.helpers.concurrency import run_in_threads

PATIENT_RETRY = RetryPolicy(max_attempts=20, backoff_base=0.01, backoff_max=0.2, backoff_jitter=0.5)


@pytest.fixture
def concurrent_store(session_factory) -> TicketStore:
    store = TicketStore(session_factory, retry_policy=PATIENT_RETRY)
    store.initialize(Context.background())
    return store


def all_tickets(store: TicketStore) -> List[Ticket]:
    tickets, _ = store.read_tickets(Context.background(), Filter(limit=1000))
    return tickets


class TestConcurrentWrites:
    """Test that the total stays exact under concurrent writers."""

    @pytest.mark.integration
    @pytest.mark.concurrency
    def test_concurrent_creates_keep_total_exact(self, concurrent_store, barrier_factory):
        workers = 8
        per_worker = 5
        barrier = barrier_factory(workers)

        def create_worker(worker_id: int):
            def _run():
                barrier.wait()
                for i in range(per_worker):
                    concurrent_store.create_ticket(
                        Context.background(),
                        Ticket(id=uuid4(), title=f"W{worker_id}-{i}", price=1.0 + i),
                    )

            return _run

        errors = run_in_threads([create_worker(n) for n in range(workers)])

        assert errors == [None] * workers
        tickets = all_tickets(concurrent_store)
        _, metadata = concurrent_store.read_tickets(Context.background(), Filter(limit=1))
        assert len(tickets) == workers * per_worker
        assert metadata.total == workers * per_worker

    @pytest.mark.integration
    @pytest.mark.concurrency
    def test_concurrent_deletes_of_one_ticket_succeed_once(
        self, concurrent_store, barrier_factory
    ):
        ctx = Context.background()
        ticket = Ticket(id=uuid4(), title="Contested", price=10.0)
        concurrent_store.create_ticket(ctx, ticket)
        concurrent_store.create_ticket(ctx, Ticket(id=uuid4(), title="Bystander", price=10.0))

        workers = 5
        barrier = barrier_factory(workers)

        def delete_worker():
            barrier.wait()
            concurrent_store.delete_ticket(Context.background(), ticket.id)

        errors = run_in_threads([delete_worker for _ in range(workers)])

        successes = [error for error in errors if error is None]
        not_found = [error for error in errors if isinstance(error, TicketNotFoundError)]
        assert len(successes) == 1
        assert len(not_found) == workers - 1

        _, metadata = concurrent_store.read_tickets(ctx, Filter(limit=1))
        assert metadata.total == 1

    @pytest.mark.integration
    @pytest.mark.concurrency
    def test_mixed_writers_match_final_state(self, concurrent_store, barrier_factory):
        ctx = Context.background()
        seeded = [Ticket(id=uuid4(), title=f"Seed {i}", price=5.0) for i in range(6)]
        for ticket in seeded:
            concurrent_store.create_ticket(ctx, ticket)

        barrier = barrier_factory(3)

        def deleter():
            barrier.wait()
            for ticket in seeded[:3]:
                concurrent_store.delete_ticket(Context.background(), ticket.id)

        def updater():
            barrier.wait()
            for ticket in seeded[3:]:
                concurrent_store.update_ticket(
                    Context.background(), TicketUpdate(id=ticket.id, price=6.0)
                )

        def creator():
            barrier.wait()
            for i in range(4):
                concurrent_store.create_ticket(
                    Context.background(), Ticket(id=uuid4(), title=f"New {i}", price=7.0)
                )

        failures = run_in_threads([deleter, updater, creator])

        assert failures == [None, None, None]
        tickets = all_tickets(concurrent_store)
        _, metadata = concurrent_store.read_tickets(ctx, Filter(limit=1))
        assert len(tickets) == metadata.total == 7
        assert all(
            t.price == 6.0 for t in tickets if t.id in {s.id for s in seeded[3:]}
        )
