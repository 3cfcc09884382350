"""Dependency injection for the ticket routes."""

from fastapi import Request

from ..config import TixerConfig
from ..core.context import Context
from ..domain import TicketID, parse_ticket_id
from ..domain.errors import InvalidTicketIdError
from ..store.interfaces import TicketService
from .middleware import bad_request


def get_config(request: Request) -> TixerConfig:
    """Get the configuration the application was built with."""
    return request.app.state.config


def get_ticket_service(request: Request) -> TicketService:
    """Get the ticket service installed on the application."""
    return request.app.state.ticket_service


def get_context(request: Request) -> Context:
    """Build the call context for one request, bounded by the request timeout."""
    timeout = request.app.state.config.server.request_timeout
    if timeout and timeout > 0:
        return Context.with_timeout(timeout)
    return Context.background()


def read_id_param(id: str) -> TicketID:
    """Parse the ``{id}`` path parameter, rejecting malformed IDs with 400."""
    try:
        return parse_ticket_id(id)
    except InvalidTicketIdError:
        raise bad_request("invalid id parameter") from None
