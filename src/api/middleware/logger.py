"""Request logging middleware."""

import logging
import time
from typing import Callable, Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from utils.logging import snapshot

DEFAULT_SKIP_PREFIXES = ("/v1/health",)


class LoggerMiddleware(BaseHTTPMiddleware):
    """Log method, path, status, latency and bounded body snapshots per request.

    Paths starting with one of ``skip_prefixes`` are passed through unlogged.
    """

    def __init__(
        self,
        app,
        logger: logging.Logger | None = None,
        skip_prefixes: Iterable[str] = DEFAULT_SKIP_PREFIXES,
    ):
        super().__init__(app)
        self.logger = logger or logging.getLogger(__name__)
        self.skip_prefixes = tuple(skip_prefixes)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path.startswith(self.skip_prefixes):
            return await call_next(request)

        request_body = await request.body()
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self.logger.error(
                "Request failed",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": 500,
                    "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                    "request_body": snapshot(request_body),
                },
            )
            raise

        # The body has to be drained to log it, so the response is rebuilt.
        response_body = b"".join([chunk async for chunk in response.body_iterator])
        self.logger.info(
            "Request handled",
            extra={
                "method": request.method,
                "path": path,
                "status": response.status_code,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                "request_body": snapshot(request_body),
                "response_body": snapshot(response_body),
            },
        )
        return Response(
            content=response_body,
            status_code=response.status_code,
            headers=dict(response.headers),
            media_type=response.media_type,
        )
