"""Ticket API endpoints.

Handlers are plain functions: the store blocks on the database, so FastAPI
runs them in its threadpool.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from ..core.context import Context
from ..domain import (
    Filter,
    Ticket,
    TicketID,
    TicketUpdate,
    Validator,
    new_ticket_id,
    validate_price,
    validate_ticket,
    validate_title,
)
from ..store.interfaces import TicketService
from ..utils.logging_config import get_logger
from .dependencies import get_context, get_ticket_service, read_id_param
from .middleware import failed_validation
from .schemas import (
    MessageResponse,
    PaginationResponse,
    ProblemDetails,
    TicketCreate,
    TicketEnvelope,
    TicketListResponse,
    TicketResponse,
    TicketUpdatePayload,
)

logger = get_logger("api")

router = APIRouter(prefix="/v1/tickets", tags=["tickets"])

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 50


def _read_uuid(value: Optional[str], key: str, validator: Validator) -> Optional[UUID]:
    if value is None or value == "":
        return None
    try:
        return UUID(value)
    except ValueError:
        validator.add_error(key, "must be a valid UUID")
        return None


def _read_int(value: Optional[str], key: str, default: int, validator: Validator) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        validator.add_error(key, "must be an integer value")
        return default


@router.post(
    "",
    response_model=TicketEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Ticket created successfully"},
        400: {"model": ProblemDetails, "description": "Malformed request body"},
        422: {"model": ProblemDetails, "description": "Validation error"},
    },
)
def create_ticket(
    payload: TicketCreate,
    response: Response,
    ctx: Context = Depends(get_context),
    service: TicketService = Depends(get_ticket_service),
) -> TicketEnvelope:
    """
    Create a new ticket.

    The ticket ID is generated by the server and returned in the ``Location``
    header.
    """
    ticket = Ticket(id=new_ticket_id(), title=payload.title, price=payload.price)

    validator = Validator()
    validate_ticket(ticket, validator)
    if not validator.valid:
        raise failed_validation(validator.errors)

    service.create_ticket(ctx, ticket)

    response.headers["Location"] = f"/v1/tickets/{ticket.id}"
    return TicketEnvelope(ticket=TicketResponse.from_ticket(ticket))


@router.get(
    "",
    response_model=TicketListResponse,
    responses={
        200: {"description": "Page of tickets retrieved successfully"},
        404: {"model": ProblemDetails, "description": "Cursor ticket not found"},
        422: {"model": ProblemDetails, "description": "Invalid pagination parameters"},
    },
)
def list_tickets(
    after: Optional[str] = None,
    before: Optional[str] = None,
    limit: Optional[str] = None,
    ctx: Context = Depends(get_context),
    service: TicketService = Depends(get_ticket_service),
) -> TicketListResponse:
    """
    List tickets, newest first.

    ``after`` continues past the last ticket of a previous page and
    ``before`` stops at the first one.
    """
    validator = Validator()
    after_id = _read_uuid(after, "after", validator)
    before_id = _read_uuid(before, "before", validator)
    page_limit = _read_int(limit, "limit", DEFAULT_PAGE_LIMIT, validator)
    validator.check(
        0 < page_limit <= MAX_PAGE_LIMIT,
        "limit",
        f"must be in the interval [1, {MAX_PAGE_LIMIT}]",
    )
    if not validator.valid:
        raise failed_validation(validator.errors)

    tickets, metadata = service.read_tickets(
        ctx, Filter(limit=page_limit, after=after_id, before=before_id)
    )

    return TicketListResponse(
        tickets=[TicketResponse.from_ticket(ticket) for ticket in tickets],
        pagination=PaginationResponse.from_metadata(metadata),
    )


@router.get(
    "/{id}",
    response_model=TicketEnvelope,
    responses={
        200: {"description": "Ticket retrieved successfully"},
        400: {"model": ProblemDetails, "description": "Invalid ticket ID format"},
        404: {"model": ProblemDetails, "description": "Ticket not found"},
    },
)
def get_ticket(
    ticket_id: TicketID = Depends(read_id_param),
    ctx: Context = Depends(get_context),
    service: TicketService = Depends(get_ticket_service),
) -> TicketEnvelope:
    """Get a ticket by ID."""
    ticket = service.read_ticket(ctx, ticket_id)
    return TicketEnvelope(ticket=TicketResponse.from_ticket(ticket))


@router.patch(
    "/{id}",
    response_model=TicketEnvelope,
    responses={
        200: {"description": "Ticket updated successfully"},
        400: {"model": ProblemDetails, "description": "Invalid ticket ID or body"},
        404: {"model": ProblemDetails, "description": "Ticket not found"},
        422: {"model": ProblemDetails, "description": "Validation error"},
    },
)
def update_ticket(
    payload: TicketUpdatePayload,
    ticket_id: TicketID = Depends(read_id_param),
    ctx: Context = Depends(get_context),
    service: TicketService = Depends(get_ticket_service),
) -> TicketEnvelope:
    """
    Partially update a ticket.

    Fields missing from the body keep their stored value.
    """
    update = TicketUpdate(id=ticket_id, title=payload.title, price=payload.price)

    validator = Validator()
    if payload.title is not None:
        validate_title(update, validator)
    if payload.price is not None:
        validate_price(update, validator)
    if not validator.valid:
        raise failed_validation(validator.errors)

    ticket = service.update_ticket(ctx, update)
    return TicketEnvelope(ticket=TicketResponse.from_ticket(ticket))


@router.delete(
    "/{id}",
    response_model=MessageResponse,
    responses={
        200: {"description": "Ticket deleted successfully"},
        400: {"model": ProblemDetails, "description": "Invalid ticket ID format"},
        404: {"model": ProblemDetails, "description": "Ticket not found"},
    },
)
def delete_ticket(
    ticket_id: TicketID = Depends(read_id_param),
    ctx: Context = Depends(get_context),
    service: TicketService = Depends(get_ticket_service),
) -> MessageResponse:
    """Delete a ticket."""
    service.delete_ticket(ctx, ticket_id)
    logger.info(f"Ticket {ticket_id} deleted through the API")
    return MessageResponse(message="ticket successfully deleted")
