"""Health and readiness endpoints."""

import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..config import TixerConfig
from ..core.context import Context
from ..domain import Filter, TicketError
from ..store.interfaces import TicketService
from ..utils.logging_config import get_logger
from .dependencies import get_config, get_context, get_ticket_service
from .schemas import HealthResponse

logger = get_logger("api")

router = APIRouter(tags=["health"])


@router.get("/v1/healthcheck", response_model=HealthResponse)
def health_check(config: TixerConfig = Depends(get_config)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="available",
        environment=config.app.environment,
        version=config.app.version,
    )


@router.get("/ready")
def readiness_check(
    config: TixerConfig = Depends(get_config),
    ctx: Context = Depends(get_context),
    service: TicketService = Depends(get_ticket_service),
):
    """Readiness check that reads one page to validate the store and its counter."""
    start_time = time.time()
    checks = {"store": False}
    errors = []

    try:
        _, metadata = service.read_tickets(ctx, Filter(limit=1))
        checks["store"] = True
    except TicketError as e:
        logger.warning(f"Readiness check failed: {e}")
        errors.append(f"Store check failed: {e.kind.value}")
        metadata = None

    response_time_ms = round((time.time() - start_time) * 1000, 2)
    all_ready = all(checks.values())

    response = {
        "status": "ready" if all_ready else "not_ready",
        "version": config.app.version,
        "checks": checks,
        "response_time_ms": response_time_ms,
    }
    if metadata is not None:
        response["total_tickets"] = metadata.total

    if errors:
        response["errors"] = errors

    status_code = 200 if all_ready else 503
    return JSONResponse(content=response, status_code=status_code)
