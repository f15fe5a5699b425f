from typing import Any, Mapping, Protocol, Sequence

from domain.model.user import User

# Field names accepted as ``get`` filter keys by every adapter.
FILTER_FIELDS = frozenset({'id', 'name', 'surnames', 'email'})


class UserRepository(Protocol):
    """Protocol defining the interface for user data access.

    Adapters raise domain errors: ``NotFoundError`` when the target is
    missing, ``ValidationError`` for ids or filters the backend cannot
    accept, ``InternalError`` for any storage failure.
    """
    def create(self, user: User) -> str:
        """Persist a user and return the store-assigned id."""
        ...

    def get(self, filter: Mapping[str, Any], skip: int | None = None, take: int | None = None) -> list[User]:
        """Return users whose fields equal every value in ``filter``.

        Whether an empty result is an error is adapter policy: the
        relational adapter raises ``NotFoundError``, the document adapter
        returns an empty list.
        """
        ...

    def get_by_id(self, user_id: str) -> User:
        """Return the user with ``user_id``."""
        ...

    def update(self, user_id: str, user: User) -> None:
        """Replace the stored fields of ``user_id`` with those of ``user``."""
        ...

    def delete(self, user_id: str) -> None:
        """Delete the user with ``user_id``."""
        ...

    def create_many(self, users: Sequence[User]) -> list[str]:
        """Insert all users in one transaction, returning ids in input order."""
        ...

    def ping(self) -> bool:
        """Return True if the backend is reachable."""
        ...
