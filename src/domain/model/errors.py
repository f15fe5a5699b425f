"""Domain-level exceptions.

Services and adapters raise these errors to express failures.
Transports map them to status codes through ``ErrorKind``, which is the
only place where HTTP statuses and gRPC codes are decided.
"""

from enum import Enum


class ErrorKind(Enum):
    """Closed set of error kinds that cross the service boundary."""
    VALIDATION = ('validation', 400, 'INVALID_ARGUMENT')
    NOT_FOUND = ('not_found', 404, 'NOT_FOUND')
    AUTH_REQUIRED = ('auth_required', 401, 'UNAUTHENTICATED')
    FORBIDDEN = ('forbidden', 403, 'PERMISSION_DENIED')
    CONFLICT = ('conflict', 409, 'ALREADY_EXISTS')
    INTERNAL = ('internal', 500, 'INTERNAL')

    def __init__(self, label: str, http_status: int, rpc_code: str):
        self.label = label
        self.http_status = http_status
        self.rpc_code = rpc_code


class DomainError(Exception):
    """Base class for all domain errors."""
    kind = ErrorKind.INTERNAL

    @property
    def message(self) -> str:
        return str(self) or self.kind.label


class ValidationError(DomainError):
    """Input violates a business validation rule."""
    kind = ErrorKind.VALIDATION


class NotFoundError(DomainError):
    """Requested entity does not exist."""
    kind = ErrorKind.NOT_FOUND


class AuthRequiredError(DomainError):
    """Credentials are missing or invalid."""
    kind = ErrorKind.AUTH_REQUIRED


class PermissionDeniedError(DomainError):
    """Caller is authenticated but lacks a required claim."""
    kind = ErrorKind.FORBIDDEN


class DuplicateError(DomainError):
    """Entity with the same unique key already exists."""
    kind = ErrorKind.CONFLICT


class InternalError(DomainError):
    """Storage, hashing or any other unexpected failure."""
    kind = ErrorKind.INTERNAL


def kind_of(exc: BaseException) -> ErrorKind:
    """Return the error kind of ``exc``; non-domain errors are internal."""
    if isinstance(exc, DomainError):
        return exc.kind
    return ErrorKind.INTERNAL
