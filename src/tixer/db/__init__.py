"""Database engine, session factory and table models."""

from .database import (
    Base,
    create_database_engine,
    create_session_factory,
    init_schema,
)
from .models import CounterRecord, TicketRecord

__all__ = [
    "Base",
    "CounterRecord",
    "TicketRecord",
    "create_database_engine",
    "create_session_factory",
    "init_schema",
]
