"""gRPC server assembly."""

import logging

import grpc

from rpc.handlers import HealthServicer, UserServicer
from rpc.interceptors import JWTInterceptor, LoggerInterceptor, RecoverInterceptor
from rpc.messages import HEALTH_SERVICE
from services.user_service import UserService
from utils.config import Settings

logger = logging.getLogger(__name__)


def create_server(settings: Settings, service: UserService, request_logger: logging.Logger | None = None) -> grpc.aio.Server:
    """Build an aio server with the recover, logger and JWT interceptors, outermost first.

    The caller binds a port and starts it.
    """
    request_logger = request_logger or logging.getLogger("rpc.requests")
    users = UserServicer(service, settings.timeout)
    health = HealthServicer(service, settings)

    server = grpc.aio.server(interceptors=[
        RecoverInterceptor(request_logger),
        LoggerInterceptor(request_logger, skip_prefixes=(f"/{HEALTH_SERVICE}/",)),
        JWTInterceptor(service.tokens, users.method_policies()),
    ])
    server.add_generic_rpc_handlers((users.generic_handler(), health.generic_handler()))
    return server


def bind(server: grpc.aio.Server, port: int, host: str = "[::]") -> int:
    """Bind an insecure port and return the one actually bound.

    Raises:
        ConnectionError: the address cannot be bound
    """
    address = f"{host}:{port}"
    try:
        bound = server.add_insecure_port(address)
    except RuntimeError as e:
        raise ConnectionError(f"failed to bind gRPC listener on {address}: {e}") from e
    if bound == 0:
        raise ConnectionError(f"failed to bind gRPC listener on {address}")
    logger.info("gRPC listener bound", extra={"address": address, "port": bound})
    return bound
