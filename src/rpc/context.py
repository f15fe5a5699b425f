"""Per-call state for gRPC handlers."""

from contextvars import ContextVar

# Decoded token claims of the current call; None on unauthenticated methods.
current_claims: ContextVar[dict | None] = ContextVar("current_claims", default=None)
