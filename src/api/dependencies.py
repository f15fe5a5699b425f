from fastapi import Request

from services.token_service import TokenService
from services.user_service import UserService
from utils.config import Settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_token_service(request: Request) -> TokenService:
    return request.app.state.user_service.tokens
