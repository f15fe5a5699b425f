"""Password hashing with bcrypt.

Hashing and verification are CPU-bound (hundreds of milliseconds at the
default cost); transports call them from worker threads.
"""

import bcrypt

from domain.model.errors import InternalError, ValidationError

# bcrypt only looks at the first 72 bytes of the input.
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Return the bcrypt digest of ``password`` using the library default cost.

    Raises:
        ValidationError: password is longer than bcrypt accepts
        InternalError: bcrypt failed
    """
    encoded = password.encode('utf-8')
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"password cannot exceed {MAX_PASSWORD_BYTES} bytes")
    try:
        return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode('utf-8')
    except ValueError as e:
        raise InternalError(f"failed to hash password: {e}") from e


def verify_password(password: str, password_hash: str) -> bool:
    """Return True iff ``password`` matches ``password_hash``."""
    encoded = password.encode('utf-8')
    if len(encoded) > MAX_PASSWORD_BYTES or not password_hash:
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode('utf-8'))
    except ValueError:
        # Stored value is not a bcrypt digest.
        return False
