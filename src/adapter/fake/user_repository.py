"""In-memory implementation of UserRepository for testing."""

import copy
import uuid
from typing import Any, Mapping, Sequence

from domain.model.errors import InternalError, NotFoundError, ValidationError
from domain.model.user import User
from port.user_repository import FILTER_FIELDS
from utils.concurrency import check_deadline


class FakeUserRepository:
    """Document-store flavoured fake: empty reads return ``[]``.

    ``fail_on_email`` makes any insert of that email raise, which lets tests
    exercise the all-or-nothing behaviour of ``create_many``.
    Writes fail once the request deadline has passed, as the drivers do.
    """

    def __init__(self, fail_on_email: str | None = None):
        self.store: dict[str, User] = {}
        self.fail_on_email = fail_on_email

    # ── write operations ─────────────────────────────────────

    def create(self, user: User) -> str:
        check_deadline()
        return self._insert(user, self.store)

    def create_many(self, users: Sequence[User]) -> list[str]:
        check_deadline()
        staged = dict(self.store)
        ids = [self._insert(user, staged) for user in users]
        self.store = staged
        return ids

    def update(self, user_id: str, user: User) -> None:
        check_deadline()
        if user_id not in self.store:
            raise NotFoundError(f"ID {user_id} not found")
        stored = copy.deepcopy(user)
        stored.id = user_id
        stored.created_at = self.store[user_id].created_at
        self.store[user_id] = stored

    def delete(self, user_id: str) -> None:
        check_deadline()
        if self.store.pop(user_id, None) is None:
            raise NotFoundError(f"ID {user_id} not found")

    def _insert(self, user: User, target: dict[str, User]) -> str:
        if self.fail_on_email is not None and user.email == self.fail_on_email:
            raise InternalError(f"insert rejected for {user.email}")
        user_id = uuid.uuid4().hex
        stored = copy.deepcopy(user)
        stored.id = user_id
        target[user_id] = stored
        return user_id

    # ── read operations ──────────────────────────────────────

    def get(self, filter: Mapping[str, Any], skip: int | None = None, take: int | None = None) -> list[User]:
        unknown = set(filter) - FILTER_FIELDS
        if unknown:
            raise ValidationError(f"unknown filter field: {sorted(unknown)[0]}")
        matches = [
            copy.deepcopy(user) for user in self.store.values()
            if all(getattr(user, key) == value for key, value in filter.items())
        ]
        start = skip or 0
        end = None if take is None else start + take
        return matches[start:end]

    def get_by_id(self, user_id: str) -> User:
        user = self.store.get(user_id)
        if user is None:
            raise NotFoundError(f"ID {user_id} not found")
        return copy.deepcopy(user)

    def ping(self) -> bool:
        return True
