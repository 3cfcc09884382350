"""Tests for classification of database errors."""

import sqlite3

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from tixer.store.integrity_policy import (
    ExpectedIntegrityTag,
    classify_integrity_error,
    extract_constraint_name,
    is_unique_violation,
    is_write_conflict,
)


class FakePgError(Exception):
    """Stands in for a psycopg error carrying a SQLSTATE code."""

    def __init__(self, message: str, pgcode: str):
        super().__init__(message)
        self.pgcode = pgcode


def integrity_error(message: str, pgcode=None) -> IntegrityError:
    orig = FakePgError(message, pgcode) if pgcode else sqlite3.IntegrityError(message)
    return IntegrityError("INSERT", {}, orig)


def operational_error(message: str, pgcode=None) -> OperationalError:
    orig = FakePgError(message, pgcode) if pgcode else sqlite3.OperationalError(message)
    return OperationalError("UPDATE", {}, orig)


class TestClassifyIntegrityError:
    """Test mapping of constraint violations to expected tags."""

    @pytest.mark.unit
    def test_sqlite_duplicate_ticket(self):
        exc = integrity_error("UNIQUE constraint failed: tickets.collection, tickets.id")

        assert is_unique_violation(exc)
        assert extract_constraint_name(exc) == "tickets.collection, tickets.id"
        assert classify_integrity_error(exc) is ExpectedIntegrityTag.TICKET_ALREADY_EXISTS

    @pytest.mark.unit
    def test_sqlite_counter_provisioning_race(self):
        exc = integrity_error(
            "UNIQUE constraint failed: ticket_counters.collection, ticket_counters.id"
        )
        assert classify_integrity_error(exc) is ExpectedIntegrityTag.COUNTER_ALREADY_PROVISIONED

    @pytest.mark.unit
    def test_postgres_duplicate_ticket(self):
        exc = integrity_error(
            'duplicate key value violates unique constraint "tickets_pkey"\n'
            "DETAIL:  Key (id)=(...) already exists.",
            pgcode="23505",
        )
        assert extract_constraint_name(exc) == "tickets_pkey"
        assert classify_integrity_error(exc) is ExpectedIntegrityTag.TICKET_ALREADY_EXISTS

    @pytest.mark.unit
    def test_not_null_violation_is_unexpected(self):
        exc = integrity_error("NOT NULL constraint failed: tickets.title")
        assert not is_unique_violation(exc)
        assert classify_integrity_error(exc) is None


class TestIsWriteConflict:
    """Test detection of retryable conflicts."""

    @pytest.mark.unit
    def test_sqlite_locked_is_retryable(self):
        assert is_write_conflict(operational_error("database is locked"))

    @pytest.mark.unit
    @pytest.mark.parametrize("code", ["40001", "40P01"])
    def test_postgres_serialization_failures_are_retryable(self, code):
        assert is_write_conflict(operational_error("conflict", pgcode=code))

    @pytest.mark.unit
    def test_counter_race_is_retryable(self):
        exc = integrity_error(
            "UNIQUE constraint failed: ticket_counters.collection, ticket_counters.id"
        )
        assert is_write_conflict(exc)

    @pytest.mark.unit
    def test_duplicate_ticket_is_not_retryable(self):
        assert not is_write_conflict(
            integrity_error("UNIQUE constraint failed: tickets.collection, tickets.id")
        )

    @pytest.mark.unit
    def test_other_failures_are_not_retryable(self):
        assert not is_write_conflict(operational_error("disk I/O error"))
        assert not is_write_conflict(ValueError("database is locked"))
