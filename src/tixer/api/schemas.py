"""Pydantic models for API request/response validation."""

from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictStr

from ..domain import Metadata, Ticket


# Base response models
class BaseResponse(BaseModel):
    """Base response model with common fields."""

    model_config = ConfigDict(from_attributes=True)


class ProblemDetails(BaseModel):
    """RFC 9457 Problem Details for HTTP APIs."""

    type: str = Field(description="A URI reference that identifies the problem type")
    title: str = Field(
        description="A short, human-readable summary of the problem type"
    )
    status: int = Field(description="The HTTP status code")
    detail: Optional[str] = Field(
        None, description="A human-readable explanation specific to this occurrence"
    )
    instance: Optional[str] = Field(
        None, description="A URI reference that identifies the specific occurrence"
    )
    errors: Optional[Dict[str, str]] = Field(
        None, description="Field errors keyed by field name"
    )


# Ticket schemas
class TicketCreate(BaseModel):
    """Schema for creating a ticket.

    Field bounds are checked by the domain validators so that clients get the
    same error messages on create and update.
    Values of the wrong JSON type are rejected rather than coerced.
    """

    title: StrictStr = Field("", description="Ticket title")
    price: StrictFloat = Field(0, description="Ticket price")


class TicketUpdatePayload(BaseModel):
    """Schema for a partial ticket update.

    Only fields present in the request body are applied; a field sent
    explicitly (even empty) is validated.
    """

    title: Optional[StrictStr] = Field(None, description="New ticket title")
    price: Optional[StrictFloat] = Field(None, description="New ticket price")


class TicketResponse(BaseResponse):
    """Schema for ticket response."""

    id: UUID
    title: str
    price: float

    @classmethod
    def from_ticket(cls, ticket: Ticket) -> "TicketResponse":
        return cls(id=ticket.id, title=ticket.title, price=ticket.price)


class TicketEnvelope(BaseModel):
    """Single ticket wrapped under the ``ticket`` key."""

    ticket: TicketResponse


class PaginationResponse(BaseModel):
    """Cursors of the returned page and the current ticket total."""

    after: Optional[UUID] = None
    before: Optional[UUID] = None
    total: int

    @classmethod
    def from_metadata(cls, metadata: Metadata) -> "PaginationResponse":
        return cls(after=metadata.after, before=metadata.before, total=metadata.total)


class TicketListResponse(BaseModel):
    """Schema for a page of tickets."""

    tickets: List[TicketResponse]
    pagination: PaginationResponse


class MessageResponse(BaseModel):
    """Schema for plain message responses."""

    message: str


class HealthResponse(BaseModel):
    """Schema for the health check response."""

    status: str
    environment: str
    version: str
