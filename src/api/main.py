"""FastAPI application factory."""

import logging

from fastapi import FastAPI

from api.errors import register_exception_handlers
from api.middleware.logger import LoggerMiddleware
from api.middleware.recover import RecoverMiddleware
from api.routes import claims, health, users
from services.user_service import UserService
from utils.config import Settings

logger = logging.getLogger(__name__)

SERVICE_NAME = "Users Service"
API_PREFIX = "/v1"


def create_app(settings: Settings, service: UserService, request_logger: logging.Logger | None = None) -> FastAPI:
    """Build the HTTP application around ``service``.

    Middleware runs outer to inner: recover, then request logging; routes
    declare their own authentication.
    """
    app = FastAPI(
        title=SERVICE_NAME,
        description="User accounts, login and claim-based authorization",
        version=settings.version,
    )
    app.state.settings = settings
    app.state.user_service = service

    register_exception_handlers(app)

    request_logger = request_logger or logging.getLogger("api.requests")
    # add_middleware prepends, so the last one added is the outermost
    app.add_middleware(LoggerMiddleware, logger=request_logger, skip_prefixes=(f"{API_PREFIX}/health",))
    app.add_middleware(RecoverMiddleware, logger=request_logger)

    app.include_router(users.router, prefix=API_PREFIX)
    app.include_router(claims.router, prefix=API_PREFIX)
    app.include_router(health.router, prefix=API_PREFIX)

    logger.info("HTTP application created", extra={"version": settings.version, "database": settings.database})
    return app
