"""Bearer token authentication for HTTP routes."""

import logging
from typing import Callable

from fastapi import Depends, Request

from api.dependencies import get_token_service
from services.token_service import TokenService

logger = logging.getLogger(__name__)


def require_token(*required_claims: str) -> Callable[..., dict]:
    """Build a dependency that authenticates the request and checks ``required_claims``.

    The decoded token claims are stored on ``request.state.claims`` and
    returned to the route.

    Usage::

        @router.delete("/{user_id}", dependencies=[Depends(require_token("admin"))])
    """
    def authenticate(request: Request, tokens: TokenService = Depends(get_token_service)) -> dict:
        claims = tokens.authenticate(request.headers.get("Authorization"), required_claims)
        request.state.claims = claims
        logger.debug("Request authenticated", extra={"userId": claims.get("user_id"), "path": request.url.path})
        return claims

    return authenticate
