"""Running blocking service calls from async transports.

``run_with_timeout`` binds the request deadline to the worker thread's
context. Code running in that thread reads it with ``time_remaining`` and
stops with ``check_deadline`` once it has passed.
"""

import asyncio
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Callable, Iterator, TypeVar

from domain.model.errors import InternalError

T = TypeVar('T')

_deadline: ContextVar[float | None] = ContextVar('request_deadline', default=None)


@contextmanager
def bound_deadline(deadline: float) -> Iterator[None]:
    """Bind ``deadline`` (a ``time.monotonic`` instant) to the current context."""
    token = _deadline.set(deadline)
    try:
        yield
    finally:
        _deadline.reset(token)


def time_remaining() -> float | None:
    """Seconds left before the current request deadline, or None outside a request."""
    deadline = _deadline.get()
    if deadline is None:
        return None
    return deadline - time.monotonic()


def check_deadline() -> None:
    """Raise InternalError if the current request deadline has passed."""
    remaining = time_remaining()
    if remaining is not None and remaining <= 0:
        raise InternalError("request timed out")


async def run_with_timeout(func: Callable[..., T], *args: Any, timeout: float, **kwargs: Any) -> T:
    """Run ``func`` in a worker thread and wait at most ``timeout`` seconds.

    On exceedance the caller stops waiting and gets an ``InternalError``.
    The thread sees the same deadline through ``time_remaining``.
    """
    deadline = time.monotonic() + timeout

    def call() -> T:
        with bound_deadline(deadline):
            return func(*args, **kwargs)

    try:
        return await asyncio.wait_for(asyncio.to_thread(call), timeout)
    except asyncio.TimeoutError as e:
        raise InternalError(f"request timed out after {timeout:g}s") from e
