"""Pydantic models for API request/response."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from domain.model.user import NewUser, User, UserPatch


class LoginRequest(BaseModel):
    """Request model for login. Emptiness is checked by the service."""
    email: str = ""
    password: str = ""


class CreateUserRequest(BaseModel):
    """Request model for user creation."""
    name: str = ""
    surnames: str = ""
    email: str = ""
    password: str = ""
    claims: list[int] = Field(default_factory=list, description="Claim ids from the catalog")

    def to_domain(self) -> NewUser:
        return NewUser(
            email=self.email,
            password=self.password,
            name=self.name,
            surnames=self.surnames,
            claim_ids=tuple(self.claims),
        )


class UpdateUserRequest(BaseModel):
    """Request model for a partial update. Omitted fields stay unchanged."""
    name: Optional[str] = None
    surnames: Optional[str] = None
    email: Optional[str] = None
    old_password: Optional[str] = None
    new_password: Optional[str] = None
    claims: Optional[list[int]] = None

    def to_domain(self) -> UserPatch:
        return UserPatch(
            name=self.name,
            surnames=self.surnames,
            email=self.email,
            old_password=self.old_password,
            new_password=self.new_password,
            claim_ids=None if self.claims is None else tuple(self.claims),
        )


class UserResponse(BaseModel):
    """Public projection of a user. The password hash is never part of it."""
    id: str = Field(..., description="User ID")
    name: str
    surnames: str
    email: str
    claims: list[int]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            surnames=user.surnames,
            email=user.email,
            claims=list(user.claim_ids),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class LoginResponse(BaseModel):
    user: UserResponse
    token: str


class InsertedIdResponse(BaseModel):
    inserted_id: str


class InsertedIdsResponse(BaseModel):
    inserted_ids: list[str]


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str = Field(..., description="healthy or unhealthy")
    version: str
    environment: str
    database: str
    http_port: int
    grpc_port: int
    dsn: str = Field(..., description="Connection string, filtered outside local environments")


class ErrorResponse(BaseModel):
    error: str
