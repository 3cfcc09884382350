"""Transactional ticket store."""

from .clock import MonotonicClock
from .interfaces import TicketService
from .retry import RetryPolicy, compute_backoff
from .ticket_store import DEFAULT_COLLECTION, DEFAULT_COUNTER_ID, TicketStore
from .unit_of_work import TransactionRunner, UnitOfWork

__all__ = [
    "DEFAULT_COLLECTION",
    "DEFAULT_COUNTER_ID",
    "MonotonicClock",
    "RetryPolicy",
    "TicketService",
    "TicketStore",
    "TransactionRunner",
    "UnitOfWork",
    "compute_backoff",
]
