from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class User:
    """Domain model representing a user.

    ``id`` is assigned by the store on insert and is left empty on records
    that are about to be written.
    """
    name: str
    surnames: str
    email: str
    password_hash: str
    claim_ids: list[int] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: str | None = None


@dataclass(frozen=True)
class NewUser:
    """Input for user creation, carrying the plaintext password."""
    email: str
    password: str
    name: str = ''
    surnames: str = ''
    claim_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class UserPatch:
    """Partial update. ``None`` means the field is absent."""
    name: str | None = None
    surnames: str | None = None
    email: str | None = None
    old_password: str | None = None
    new_password: str | None = None
    claim_ids: tuple[int, ...] | None = None

    def is_empty(self) -> bool:
        """True when nothing would change. ``old_password`` alone only authorizes a change."""
        return all(value is None for value in (
            self.name, self.surnames, self.email, self.new_password, self.claim_ids,
        ))


@dataclass(frozen=True)
class LoginResult:
    user: User
    token: str
