"""SQLAlchemy models for the Tixer ticket store."""

from datetime import timezone
from uuid import UUID

from sqlalchemy import Column, DateTime, Float, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.types import CHAR, TypeDecorator

from .database import Base


class GUID(TypeDecorator):
    """Platform-independent GUID type using String for SQLite."""

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID())
        else:
            return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        elif dialect.name == "postgresql":
            return value if isinstance(value, UUID) else UUID(str(value))
        else:
            return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, UUID):
            return UUID(str(value))
        return value


class UTCDateTime(TypeDecorator):
    """Timestamp stored as naive UTC and always loaded as timezone-aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class TicketRecord(Base):
    """A ticket document within a collection."""

    __tablename__ = "tickets"

    # IDs are unique within a collection
    collection = Column(String(100), primary_key=True)
    id = Column(GUID(), primary_key=True)
    title = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)
    date_created = Column(UTCDateTime(), nullable=False)
    date_updated = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        # Page order: newest first, ID as tiebreak
        Index("ix_tickets_collection_created", "collection", "date_created", "id"),
    )

    def __repr__(self) -> str:
        return f"<TicketRecord(id={self.id}, title='{self.title}')>"


class CounterRecord(Base):
    """Singleton aggregate counting the live tickets of a collection."""

    __tablename__ = "ticket_counters"

    collection = Column(String(100), primary_key=True)
    id = Column(String(100), primary_key=True)
    total_tickets = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<CounterRecord(collection='{self.collection}', id='{self.id}', "
            f"total_tickets={self.total_tickets})>"
        )
