"""User account routes."""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_settings, get_user_service
from api.errors import ERROR_RESPONSES
from api.models import (
    CreateUserRequest,
    InsertedIdResponse,
    InsertedIdsResponse,
    LoginRequest,
    LoginResponse,
    UpdateUserRequest,
    UserResponse,
)
from api.security import require_token
from domain.model.claims import Claim
from services.user_service import UserService
from utils.concurrency import run_with_timeout
from utils.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"], responses=ERROR_RESPONSES)


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    """Check credentials and return the user with a bearer token."""
    result = await run_with_timeout(service.login, request.email, request.password, timeout=settings.timeout)
    return LoginResponse(user=UserResponse.from_domain(result.user), token=result.token)


@router.post("", response_model=InsertedIdResponse)
async def create_user(
    request: CreateUserRequest,
    service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    user_id = await run_with_timeout(service.create, request.to_domain(), timeout=settings.timeout)
    return InsertedIdResponse(inserted_id=user_id)


@router.post("/many", response_model=InsertedIdsResponse)
async def create_users(
    request: list[CreateUserRequest],
    service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    """Create every user in the list, or none of them."""
    new_users = [item.to_domain() for item in request]
    user_ids = await run_with_timeout(service.create_many, new_users, timeout=settings.timeout)
    return InsertedIdsResponse(inserted_ids=user_ids)


@router.get("", response_model=list[UserResponse], dependencies=[Depends(require_token())])
async def list_users(
    service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    users = await run_with_timeout(service.get_all, timeout=settings.timeout)
    return [UserResponse.from_domain(user) for user in users]


@router.get("/email/{email}", response_model=UserResponse, dependencies=[Depends(require_token())])
async def get_user_by_email(
    email: str,
    service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    user = await run_with_timeout(service.get_by_email, email, timeout=settings.timeout)
    return UserResponse.from_domain(user)


@router.get("/{user_id}", response_model=UserResponse, dependencies=[Depends(require_token())])
async def get_user(
    user_id: str,
    service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    user = await run_with_timeout(service.get_by_id, user_id, timeout=settings.timeout)
    return UserResponse.from_domain(user)


@router.patch("/{user_id}", dependencies=[Depends(require_token())])
async def update_user(
    user_id: str,
    request: UpdateUserRequest,
    service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    """Apply the fields present in the body. Responds with ``null``."""
    await run_with_timeout(service.update, user_id, request.to_domain(), timeout=settings.timeout)
    return None


@router.delete("/{user_id}", dependencies=[Depends(require_token(Claim.ADMIN.label))])
async def delete_user(
    user_id: str,
    service: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_settings),
):
    """Delete a user. Requires the admin claim."""
    await run_with_timeout(service.delete, user_id, timeout=settings.timeout)
    return None
