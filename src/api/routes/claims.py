"""Claim catalog route."""

from fastapi import APIRouter, Depends

from api.dependencies import get_user_service
from api.errors import ERROR_RESPONSES
from api.security import require_token
from services.user_service import UserService

router = APIRouter(prefix="/claims", tags=["claims"], responses=ERROR_RESPONSES)


@router.get("", response_model=dict[int, str], dependencies=[Depends(require_token())])
async def get_claims(service: UserService = Depends(get_user_service)):
    """Return the claim catalog as ``{id: name}``."""
    return dict(service.get_claims())
