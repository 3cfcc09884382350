"""
Classification of database errors raised inside a unit of work.

Distinguishes constraint violations the store expects (a colliding ticket ID,
two writers provisioning the same counter) and retryable write conflicts from
failures that must surface as an unavailable store.
"""

from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from ..utils.logging_config import get_logger

logger = get_logger("store")


class ExpectedIntegrityTag(Enum):
    """Tags for expected integrity constraint violations."""

    TICKET_ALREADY_EXISTS = "ticket_already_exists"
    COUNTER_ALREADY_PROVISIONED = "counter_already_provisioned"


# Map constraint names to their expected tags.
# SQLite reports the constrained columns, PostgreSQL the constraint name.
CONSTRAINT_TAG_MAP: Dict[str, ExpectedIntegrityTag] = {
    "tickets.collection, tickets.id": ExpectedIntegrityTag.TICKET_ALREADY_EXISTS,
    "tickets_pkey": ExpectedIntegrityTag.TICKET_ALREADY_EXISTS,
    "ticket_counters.collection, ticket_counters.id": ExpectedIntegrityTag.COUNTER_ALREADY_PROVISIONED,
    "ticket_counters_pkey": ExpectedIntegrityTag.COUNTER_ALREADY_PROVISIONED,
}

# Violations that mean another transaction won a race; the unit of work is retried
RETRYABLE_TAGS = {ExpectedIntegrityTag.COUNTER_ALREADY_PROVISIONED}

# SQLSTATE codes for serialization failure and deadlock
RETRYABLE_SQLSTATES = {"40001", "40P01"}

RETRYABLE_MESSAGES = (
    "database is locked",
    "database table is locked",
    "could not serialize access",
    "deadlock detected",
)


def _error_message(exc: DBAPIError) -> str:
    return str(exc.orig) if exc.orig is not None else str(exc)


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    # psycopg2 exposes pgcode, psycopg 3 sqlstate
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_unique_violation(exc: IntegrityError) -> bool:
    """Check if the IntegrityError is a unique or primary key violation."""
    if _sqlstate(exc) == "23505":
        return True
    error_msg = _error_message(exc)
    return (
        "UNIQUE constraint failed" in error_msg
        or "duplicate key value violates unique constraint" in error_msg
    )


def extract_constraint_name(exc: IntegrityError) -> Optional[str]:
    """Extract constraint name from IntegrityError."""
    error_msg = _error_message(exc)

    # SQLite format: "UNIQUE constraint failed: table.column1, table.column2"
    if "UNIQUE constraint failed:" in error_msg:
        return error_msg.split("UNIQUE constraint failed:", 1)[1].strip().splitlines()[0]

    # PostgreSQL format: duplicate key value violates unique constraint "name"
    marker = "violates unique constraint"
    if marker in error_msg:
        tail = error_msg.split(marker, 1)[1].strip()
        if tail.startswith('"'):
            return tail[1:].split('"', 1)[0]

    return None


def classify_integrity_error(exc: IntegrityError) -> Optional[ExpectedIntegrityTag]:
    """
    Classify an IntegrityError to determine if it's an expected constraint violation.

    Args:
        exc: The IntegrityError exception to classify

    Returns:
        ExpectedIntegrityTag if this is an expected violation, None otherwise
    """
    if not is_unique_violation(exc):
        return None

    constraint_name = extract_constraint_name(exc)
    if constraint_name is None:
        return None

    return CONSTRAINT_TAG_MAP.get(constraint_name)


def is_write_conflict(exc: BaseException) -> bool:
    """Check whether ``exc`` is a conflict another attempt of the unit of work may avoid."""
    if isinstance(exc, IntegrityError):
        return classify_integrity_error(exc) in RETRYABLE_TAGS

    if not isinstance(exc, (OperationalError, DBAPIError)):
        return False

    if _sqlstate(exc) in RETRYABLE_SQLSTATES:
        return True

    error_msg = _error_message(exc).lower()
    return any(message in error_msg for message in RETRYABLE_MESSAGES)


def log_expected_violation(
    tag: ExpectedIntegrityTag, exc: IntegrityError, context: Dict[str, Any]
) -> None:
    """
    Log an expected integrity violation at INFO level with structured context.

    Args:
        tag: The classification tag for this violation
        exc: The original IntegrityError
        context: Additional context for logging (operation, entity IDs, etc.)
    """
    logger.info(
        "Expected integrity violation",
        extra={
            "integrity_tag": tag.value,
            "constraint_name": extract_constraint_name(exc),
            "operation": context.get("operation", "unknown"),
            "entity_id": context.get("entity_id"),
            "collection": context.get("collection"),
        },
    )


def log_unexpected_violation(exc: IntegrityError, context: Dict[str, Any]) -> None:
    """
    Log an unexpected integrity violation at ERROR level.

    Args:
        exc: The IntegrityError that was not expected
        context: Additional context for logging
    """
    logger.error(
        "Unexpected integrity violation",
        extra={
            "constraint_name": extract_constraint_name(exc),
            "operation": context.get("operation", "unknown"),
            "entity_id": context.get("entity_id"),
            "collection": context.get("collection"),
            "error_message": str(exc),
        },
        exc_info=exc,
    )
