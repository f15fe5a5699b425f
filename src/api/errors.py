"""Exception handlers rendering errors as ``{"error": message}``."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse
from domain.model.errors import DomainError, ErrorKind

logger = logging.getLogger(__name__)

# OpenAPI documentation of the error body, one entry per status a route may return
ERROR_RESPONSES = {kind.http_status: {"model": ErrorResponse} for kind in ErrorKind}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.kind is ErrorKind.INTERNAL:
        # Cause stays in the log record.
        logger.error(
            "Request failed",
            extra={"method": request.method, "path": request.url.path, "error": exc.message},
            exc_info=exc,
        )
    return error_response(exc.kind.http_status, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON or wrongly typed fields."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return error_response(ErrorKind.VALIDATION.http_status, " | ".join(messages) or "invalid request")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
