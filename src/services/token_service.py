"""Bearer token minting and verification (HMAC-signed JWT)."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable

from jose import JWTError, jwt

from domain.model.claims import claim_name
from domain.model.errors import AuthRequiredError, PermissionDeniedError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]
TOKEN_LIFETIME = timedelta(hours=168)
BEARER_SCHEME = "Bearer"


def parse_authorization(authorization: str | None) -> str:
    """Extract the token from an ``Authorization`` value of the form ``Bearer <token>``."""
    if not authorization:
        raise AuthRequiredError("authorization token is not provided")

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1]:
        raise AuthRequiredError("invalid token format, should be Bearer + {token}")
    return parts[1]


class TokenService:
    def __init__(self, secret: str, lifetime: timedelta = TOKEN_LIFETIME):
        self._secret = secret
        self._lifetime = lifetime

    def mint(self, user_id: str, claim_ids: Iterable[int]) -> str:
        """Create a signed token for ``user_id`` with one flag per claim.

        Raises:
            ValidationError: a claim id is not part of the catalog
        """
        payload = {
            "authorized": True,
            "user_id": user_id,
            "exp": datetime.now(timezone.utc) + self._lifetime,
        }
        for claim_id in claim_ids:
            payload[claim_name(claim_id)] = True
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)

    def verify(self, token: str, required_claims: Iterable[str] = ()) -> dict:
        """Verify ``token`` and return its decoded claims.

        Raises:
            AuthRequiredError: malformed token, non-HMAC algorithm, bad signature or expired
            PermissionDeniedError: a required claim is missing
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise AuthRequiredError(f"invalid token: {e}") from e

        if not str(header.get("alg", "")).startswith("HS"):
            raise AuthRequiredError("signin method not valid")

        try:
            claims = jwt.decode(token, self._secret, algorithms=HMAC_ALGORITHMS)
        except JWTError as e:
            raise AuthRequiredError(f"invalid token: {e}") from e

        missing = [name for name in required_claims if name not in claims]
        if missing:
            # The missing claim is logged, not returned.
            logger.info("Token lacks required claims", extra={"missing_claims": missing, "userId": claims.get("user_id")})
            raise PermissionDeniedError("insufficient permissions")
        return claims

    def authenticate(self, authorization: str | None, required_claims: Iterable[str] = ()) -> dict:
        """Parse an ``Authorization`` value and verify the token it carries."""
        return self.verify(parse_authorization(authorization), required_claims)
