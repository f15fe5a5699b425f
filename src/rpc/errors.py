"""Domain error to gRPC status mapping."""

import grpc

from domain.model.errors import DomainError, ErrorKind, kind_of


def status_code(kind: ErrorKind) -> grpc.StatusCode:
    return grpc.StatusCode[kind.rpc_code]


async def abort_with(context: grpc.aio.ServicerContext, exc: BaseException):
    """Abort the call with the status of ``exc``. Never returns."""
    kind = kind_of(exc)
    message = exc.message if isinstance(exc, DomainError) else str(exc) or kind.label
    await context.abort(status_code(kind), message)
