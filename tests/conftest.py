"""Pytest configuration and shared fixtures."""

import os
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

from tixer.config import TixerConfig, reset_config
from tixer.core.context import Context
from tixer.db.database import create_database_engine, create_session_factory, init_schema
from tixer.domain import Ticket, new_ticket_id
from tixer.main import create_app
from tixer.store import TicketStore
from tests.helpers.concurrency import barrier_sync


@pytest.fixture(autouse=True)
def clean_config(monkeypatch) -> Generator[None, None, None]:
    """Isolate tests from TIXER_* variables of the surrounding environment."""
    for name in list(os.environ):
        if name.startswith("TIXER_"):
            monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def db_url(tmp_path) -> str:
    """URL of a fresh SQLite database file."""
    return f"sqlite:///{tmp_path / 'tixer_test.db'}"


@pytest.fixture
def engine(db_url):
    """Engine with the schema created, disposed after the test."""
    engine = create_database_engine(db_url)
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def ctx() -> Context:
    return Context.background()


@pytest.fixture
def store(session_factory, ctx) -> TicketStore:
    """Ticket store with its counter provisioned."""
    store = TicketStore(session_factory)
    store.initialize(ctx)
    return store


@pytest.fixture
def unprovisioned_store(session_factory) -> TicketStore:
    """Ticket store whose counter has not been created yet."""
    return TicketStore(session_factory)


@pytest.fixture
def make_ticket() -> Callable[..., Ticket]:
    """Factory for valid, not yet persisted tickets."""

    def _make(title: str = "Concert", price: float = 49.99) -> Ticket:
        return Ticket(id=new_ticket_id(), title=title, price=price)

    return _make


@pytest.fixture
def create_tickets(store, ctx, make_ticket) -> Callable[[int], list]:
    """Create ``n`` tickets in order and return them oldest first."""

    def _create(n: int) -> list:
        tickets = []
        for i in range(n):
            ticket = make_ticket(title=f"Ticket {i}", price=10.0 + i)
            store.create_ticket(ctx, ticket)
            tickets.append(ticket)
        return tickets

    return _create


@pytest.fixture
def barrier_factory():
    return barrier_sync


@pytest.fixture
def app_config() -> TixerConfig:
    return TixerConfig()


@pytest.fixture
def client(store, app_config) -> Generator[TestClient, None, None]:
    """Test client serving the provisioned store."""
    app = create_app(store=store, config=app_config)
    with TestClient(app) as test_client:
        yield test_client
