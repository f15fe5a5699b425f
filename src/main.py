"""Users service entry point.

Runs the HTTP (uvicorn) and gRPC servers in one event loop over a shared
UserService. Exits with status 1 on configuration or backend errors.
"""

import asyncio
import logging
import sys

import uvicorn
from dotenv import load_dotenv

from adapter.factory import build_user_repository
from adapter.mongodb.connection import reset_client
from adapter.postgres.pool import close_pool
from api.main import create_app
from rpc.server import bind, create_server
from services.token_service import TokenService
from services.user_service import UserService
from utils.config import ConfigError, Settings, load_settings
from utils.logging import setup_structured_logging
from worker.health_poller import run_health_poller

logger = logging.getLogger(__name__)

GRPC_SHUTDOWN_GRACE_SECONDS = 5.0


async def serve(settings: Settings, service: UserService) -> None:
    app = create_app(settings, service)
    http_server = uvicorn.Server(uvicorn.Config(
        app,
        host="0.0.0.0",
        port=settings.http_port,
        access_log=False,
        log_config=None,
    ))

    grpc_server = create_server(settings, service)
    bind(grpc_server, settings.grpc_port)
    await grpc_server.start()
    logger.info("gRPC server started", extra={"port": settings.grpc_port})

    poller = None
    if settings.async_run:
        poller = asyncio.create_task(run_health_poller(settings.http_port, settings.async_interval))

    try:
        await http_server.serve()
    finally:
        if poller is not None:
            poller.cancel()
            await asyncio.gather(poller, return_exceptions=True)
        await grpc_server.stop(GRPC_SHUTDOWN_GRACE_SECONDS)
        logger.info("Servers stopped")


def main() -> int:
    load_dotenv()
    setup_structured_logging()

    try:
        settings = load_settings()
        repo = build_user_repository(settings)
    except (ConfigError, ConnectionError) as e:
        logger.error("Startup failed", extra={"error": str(e)})
        return 1

    logger.info(
        "Starting users service",
        extra={
            "version": settings.version,
            "environment": settings.environment,
            "database": settings.database,
            "dsn": settings.public_dsn(),
        },
    )
    service = UserService(repo, TokenService(settings.jwt_secret))

    try:
        asyncio.run(serve(settings, service))
    except ConnectionError as e:
        logger.error("Startup failed", extra={"error": str(e)})
        return 1
    except KeyboardInterrupt:
        logger.info("Users service stopped")
    finally:
        reset_client()
        close_pool()
    return 0


if __name__ == "__main__":
    sys.exit(main())
