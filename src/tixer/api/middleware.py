"""Error responses in RFC 9457 Problem Details format."""

from typing import Any, Callable, Dict, Optional, Sequence

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ..domain import ErrorKind, TicketError, ValidationError
from ..utils.logging_config import get_logger, log_exception

logger = get_logger("api")

NOT_FOUND_DETAIL = "the requested resource could not be found"
SERVER_ERROR_DETAIL = "the server encountered a problem and could not process your request"

# Unprocessable Content
HTTP_422_UNPROCESSABLE = 422

DEFAULT_TITLES = {
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


class ProblemDetailsException(HTTPException):
    """Enhanced HTTPException that includes RFC 9457 Problem Details."""

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        **extra_fields,
    ):
        super().__init__(status_code=status_code, detail=detail)
        self.title = title
        self.type_uri = type_uri or f"https://httpstatuses.com/{status_code}"
        self.instance = instance
        self.extra_fields = extra_fields


def get_default_title(status_code: int) -> str:
    """Get default title for HTTP status codes."""
    return DEFAULT_TITLES.get(status_code, "HTTP Error")


def create_problem_response(
    status_code: int,
    title: str,
    detail: Optional[str] = None,
    type_uri: Optional[str] = None,
    instance: Optional[str] = None,
    **extra_fields,
) -> JSONResponse:
    """Create a JSON response in RFC 9457 Problem Details format."""
    problem: Dict[str, Any] = {
        "type": type_uri or f"https://httpstatuses.com/{status_code}",
        "title": title,
        "status": status_code,
    }

    if detail:
        problem["detail"] = detail
    if instance:
        problem["instance"] = instance

    # Add any extra fields
    problem.update(extra_fields)

    return JSONResponse(
        status_code=status_code,
        content=problem,
        media_type="application/problem+json",
    )


def bad_request(detail: str) -> ProblemDetailsException:
    return ProblemDetailsException(
        status_code=status.HTTP_400_BAD_REQUEST, title="Bad Request", detail=detail
    )


def failed_validation(errors: Dict[str, str]) -> ProblemDetailsException:
    return ProblemDetailsException(
        status_code=HTTP_422_UNPROCESSABLE,
        title="Validation Error",
        detail="the request contains invalid fields",
        errors=errors,
    )


def _location_key(loc: Sequence[Any]) -> str:
    # Drop the "body"/"query"/"path" prefix pydantic adds
    parts = [str(part) for part in loc[1:]] or [str(part) for part in loc]
    return ".".join(parts)


async def problem_details_exception_handler(
    request: Request, exc: ProblemDetailsException
) -> JSONResponse:
    return create_problem_response(
        status_code=exc.status_code,
        title=exc.title,
        detail=exc.detail,
        type_uri=exc.type_uri,
        instance=exc.instance or request.url.path,
        **exc.extra_fields,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    detail = exc.detail
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        detail = NOT_FOUND_DETAIL
    return create_problem_response(
        status_code=exc.status_code,
        title=get_default_title(exc.status_code),
        detail=detail,
        instance=request.url.path,
    )


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed JSON is a bad request; badly typed fields fail validation."""
    errors: Dict[str, str] = {}
    for error in exc.errors():
        if error.get("type") == "json_invalid":
            return create_problem_response(
                status_code=status.HTTP_400_BAD_REQUEST,
                title="Bad Request",
                detail="body contains badly-formed JSON",
                instance=request.url.path,
            )
        errors.setdefault(_location_key(error.get("loc", ())), error.get("msg", "is invalid"))

    return create_problem_response(
        status_code=HTTP_422_UNPROCESSABLE,
        title="Validation Error",
        detail="the request contains invalid fields",
        instance=request.url.path,
        errors=errors,
    )


async def ticket_error_handler(request: Request, exc: TicketError) -> JSONResponse:
    """Map a domain error to a response by its kind."""
    if exc.kind is ErrorKind.NOT_FOUND:
        logger.debug(f"{request.method} {request.url.path}: {exc.message}")
        return create_problem_response(
            status_code=status.HTTP_404_NOT_FOUND,
            title="Not Found",
            detail=NOT_FOUND_DETAIL,
            instance=request.url.path,
        )

    if exc.kind is ErrorKind.VALIDATION and isinstance(exc, ValidationError):
        return create_problem_response(
            status_code=HTTP_422_UNPROCESSABLE,
            title="Validation Error",
            detail="the request contains invalid fields",
            instance=request.url.path,
            errors=exc.errors,
        )

    log_exception(
        "api", exc, {"method": request.method, "path": request.url.path, "kind": exc.kind.value}
    )
    return create_problem_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        title="Internal Server Error",
        detail=SERVER_ERROR_DETAIL,
        instance=request.url.path,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the problem details handlers on ``app``."""
    app.add_exception_handler(ProblemDetailsException, problem_details_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(TicketError, ticket_error_handler)


class ProblemDetailsMiddleware(BaseHTTPMiddleware):
    """Middleware converting unhandled exceptions into a generic 500 problem."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            response = await call_next(request)
            return response
        except Exception as exc:
            log_exception("api", exc, {"method": request.method, "path": request.url.path})
            return create_problem_response(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                title="Internal Server Error",
                detail=SERVER_ERROR_DETAIL,
                instance=request.url.path,
            )
