"""Health check endpoint."""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from api.dependencies import get_settings, get_user_service
from api.models import HealthResponse
from domain.model.errors import DomainError
from services.user_service import UserService
from utils.concurrency import run_with_timeout
from utils.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=HealthResponse)
async def health(
    service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    """Service labels plus backend reachability; 503 when the backend is down."""
    try:
        healthy = await run_with_timeout(service.ping, timeout=settings.timeout)
    except DomainError as e:
        logger.warning("Health check failed", extra={"error": e.message})
        healthy = False

    body = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=settings.version,
        environment=settings.environment,
        database=settings.database,
        http_port=settings.http_port,
        grpc_port=settings.grpc_port,
        dsn=settings.public_dsn(),
    )
    status_code = status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=body.model_dump(), status_code=status_code)
