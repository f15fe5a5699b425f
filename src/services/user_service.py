"""User service: account lifecycle and login business logic.

Pure business logic with no transport dependencies.
Raises domain errors that transports map to status codes. Writes are
skipped once the request deadline bound by the transport has passed.
"""

import logging
from datetime import datetime, timezone
from typing import Mapping, Sequence

from domain.model.claims import CLAIMS, validate_claims
from domain.model.errors import NotFoundError, ValidationError
from domain.model.user import LoginResult, NewUser, User, UserPatch
from port.user_repository import UserRepository
from services.password_service import hash_password, verify_password
from services.token_service import TokenService
from utils.concurrency import check_deadline

logger = logging.getLogger(__name__)


def _require(**fields: str) -> None:
    """Raise ValidationError listing every empty field."""
    msgs = [f"{name} cannot be empty" for name, value in fields.items() if not value]
    if msgs:
        raise ValidationError(" | ".join(msgs))


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserService:
    def __init__(self, repo: UserRepository, tokens: TokenService):
        self.repo = repo
        self.tokens = tokens

    def login(self, email: str, password: str) -> LoginResult:
        """Check credentials and mint a bearer token carrying the user's claims.

        Raises:
            ValidationError: empty fields, unknown email or wrong password
        """
        _require(email=email, password=password)

        user = self.get_by_email(email)
        if not verify_password(password, user.password_hash):
            raise ValidationError("incorrect password")

        token = self.tokens.mint(user.id, user.claim_ids)
        logger.info("User logged in", extra={"userId": user.id})
        return LoginResult(user=user, token=token)

    def create(self, new_user: NewUser) -> str:
        """Create a user and return its id."""
        user = self._prepare(new_user)
        check_deadline()
        user_id = self.repo.create(user)
        logger.info("User created", extra={"userId": user_id})
        return user_id

    def create_many(self, new_users: Sequence[NewUser]) -> list[str]:
        """Create all users or none of them."""
        if not new_users:
            raise ValidationError("users cannot be empty")

        users = [self._prepare(new_user) for new_user in new_users]
        check_deadline()
        user_ids = self.repo.create_many(users)
        logger.info("Users created", extra={"count": len(user_ids)})
        return user_ids

    def _prepare(self, new_user: NewUser) -> User:
        """Validate input and build the record to store, with the password hashed."""
        _require(email=new_user.email, password=new_user.password)
        password_hash = hash_password(new_user.password)
        validate_claims(new_user.claim_ids)

        now = _now()
        return User(
            name=new_user.name,
            surnames=new_user.surnames,
            email=new_user.email,
            password_hash=password_hash,
            claim_ids=list(new_user.claim_ids),
            created_at=now,
            updated_at=now,
        )

    def get_all(self) -> list[User]:
        """List every user. An empty directory is not an error."""
        try:
            return self.repo.get({})
        except NotFoundError:
            return []

    def get_by_email(self, email: str) -> User:
        try:
            users = self.repo.get({'email': email})
        except NotFoundError:
            users = []
        if not users:
            raise ValidationError("email not found")
        return users[0]

    def get_by_id(self, user_id: str) -> User:
        return self.repo.get_by_id(user_id)

    def update(self, user_id: str, patch: UserPatch) -> None:
        """Apply the present fields of ``patch``.

        An empty patch writes nothing, so ``updated_at`` only moves on real changes.

        Raises:
            NotFoundError: no user with ``user_id``
            ValidationError: wrong old password or unknown claim id
        """
        user = self.repo.get_by_id(user_id)
        if patch.is_empty():
            return

        if patch.name is not None:
            user.name = patch.name
        if patch.surnames is not None:
            user.surnames = patch.surnames
        if patch.email is not None:
            user.email = patch.email
        if patch.new_password is not None:
            if patch.old_password is None or not verify_password(patch.old_password, user.password_hash):
                raise ValidationError("old password incorrect")
            user.password_hash = hash_password(patch.new_password)
        if patch.claim_ids is not None:
            validate_claims(patch.claim_ids)
            user.claim_ids = list(patch.claim_ids)

        user.id = None
        user.updated_at = _now()
        check_deadline()
        self.repo.update(user_id, user)
        logger.info("User updated", extra={"userId": user_id})

    def delete(self, user_id: str) -> None:
        check_deadline()
        self.repo.delete(user_id)
        logger.info("User deleted", extra={"userId": user_id})

    def get_claims(self) -> Mapping[int, str]:
        return CLAIMS

    def ping(self) -> bool:
        return self.repo.ping()
