"""Outermost HTTP middleware: turns unhandled exceptions into 500 responses."""

import logging
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from domain.model.errors import ErrorKind


class RecoverMiddleware(BaseHTTPMiddleware):
    """Catch any exception raised downstream and answer with ``Internal``.

    The traceback goes to the log sink; the client only sees the method,
    path and exception text.
    """

    def __init__(self, app, logger: logging.Logger | None = None):
        super().__init__(app)
        self.logger = logger or logging.getLogger(__name__)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            self.logger.exception(
                "Recovered from unhandled exception",
                extra={"method": request.method, "path": request.url.path},
            )
            return JSONResponse(
                status_code=ErrorKind.INTERNAL.http_status,
                content={"error": f"recovered from panic in {request.method} {request.url.path}: {e}"},
            )
