"""gRPC server interceptors: recover, request logging and JWT authentication.

``grpc.aio.server(interceptors=[...])`` applies them in list order, the
first one being the outermost. Each interceptor wraps the behaviour of the
handler returned by the rest of the chain, so unary and server-streaming
methods are covered alike.
"""

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

import grpc

from domain.model.errors import DomainError, ErrorKind
from rpc.context import current_claims
from rpc.errors import abort_with, status_code
from services.token_service import TokenService
from utils.logging import snapshot

Continuation = Callable[[grpc.HandlerCallDetails], Awaitable[grpc.RpcMethodHandler]]


@dataclass(frozen=True)
class MethodPolicy:
    """Protection declared for one fully qualified method, e.g. ``/users.v1.UserService/Delete``."""
    method: str
    required_claims: tuple[str, ...] = ()


def _rewrap(handler: grpc.RpcMethodHandler, unary=None, stream=None) -> grpc.RpcMethodHandler:
    """Return ``handler`` with its unary-unary or unary-stream behaviour replaced."""
    if handler.unary_unary is not None and unary is not None:
        return grpc.unary_unary_rpc_method_handler(
            unary(handler.unary_unary),
            request_deserializer=handler.request_deserializer,
            response_serializer=handler.response_serializer,
        )
    if handler.unary_stream is not None and stream is not None:
        return grpc.unary_stream_rpc_method_handler(
            stream(handler.unary_stream),
            request_deserializer=handler.request_deserializer,
            response_serializer=handler.response_serializer,
        )
    return handler


def _code_name(context) -> str:
    """Status name of the call; the aio context reports codes as ints."""
    code = context.code()
    if code is None:
        return grpc.StatusCode.OK.name
    if isinstance(code, grpc.StatusCode):
        return code.name
    for status in grpc.StatusCode:
        if status.value[0] == code:
            return status.name
    return str(code)


class RecoverInterceptor(grpc.aio.ServerInterceptor):
    """Turn any unexpected exception in a handler into ``INTERNAL``.

    Aborts raised on purpose by handlers pass through untouched.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)

    async def intercept_service(self, continuation: Continuation, handler_call_details: grpc.HandlerCallDetails):
        handler = await continuation(handler_call_details)
        if handler is None:
            return None
        method = handler_call_details.method

        def unary(behavior):
            async def recovered(request, context):
                try:
                    return await behavior(request, context)
                except grpc.aio.AbortError:
                    raise
                except Exception as e:
                    await self._recover(context, method, e)
            return recovered

        def stream(behavior):
            async def recovered(request, context):
                try:
                    async for response in behavior(request, context):
                        yield response
                except grpc.aio.AbortError:
                    raise
                except Exception as e:
                    await self._recover(context, method, e)
            return recovered

        return _rewrap(handler, unary, stream)

    async def _recover(self, context, method: str, exc: Exception) -> None:
        self.logger.error("Recovered from unhandled exception", extra={"method": method}, exc_info=exc)
        await context.abort(status_code(ErrorKind.INTERNAL), f"recovered from panic in {method}: {exc}")


class LoggerInterceptor(grpc.aio.ServerInterceptor):
    """Log method, status, latency and bounded message snapshots per call."""

    def __init__(self, logger: logging.Logger | None = None, skip_prefixes: Iterable[str] = ()):
        self.logger = logger or logging.getLogger(__name__)
        self.skip_prefixes = tuple(skip_prefixes)

    async def intercept_service(self, continuation: Continuation, handler_call_details: grpc.HandlerCallDetails):
        handler = await continuation(handler_call_details)
        method = handler_call_details.method
        if handler is None or method.startswith(self.skip_prefixes):
            return handler

        def unary(behavior):
            async def logged(request, context):
                start = time.perf_counter()
                response = None
                try:
                    response = await behavior(request, context)
                    return response
                finally:
                    self._log(context, method, start, request, response)
            return logged

        def stream(behavior):
            async def logged(request, context):
                start = time.perf_counter()
                sent = 0
                try:
                    async for response in behavior(request, context):
                        sent += 1
                        yield response
                finally:
                    self._log(context, method, start, request, None, sent)
            return logged

        return _rewrap(handler, unary, stream)

    def _log(self, context, method, start, request, response, sent=None) -> None:
        extra = {
            "method": method,
            "status": _code_name(context),
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            "request_body": snapshot(str(request)),
        }
        if response is not None:
            extra["response_body"] = snapshot(str(response))
        if sent is not None:
            extra["messages_sent"] = sent
        self.logger.info("RPC handled", extra=extra)


class JWTInterceptor(grpc.aio.ServerInterceptor):
    """Authenticate calls to protected methods.

    Methods without a policy pass through. For protected ones the
    ``authorization`` metadata must be ``Bearer <token>``; the decoded
    claims are bound to ``current_claims`` while the handler runs.
    """

    def __init__(self, tokens: TokenService, policies: Iterable[MethodPolicy]):
        self.tokens = tokens
        self.policies = {policy.method: policy for policy in policies}

    async def intercept_service(self, continuation: Continuation, handler_call_details: grpc.HandlerCallDetails):
        handler = await continuation(handler_call_details)
        policy = self.policies.get(handler_call_details.method)
        if handler is None or policy is None:
            return handler

        metadata = dict(handler_call_details.invocation_metadata or ())
        try:
            claims = self.tokens.authenticate(metadata.get("authorization"), policy.required_claims)
        except DomainError as e:
            return _rewrap(handler, _deny_unary(e), _deny_stream(e))

        def unary(behavior):
            async def bound(request, context):
                current_claims.set(claims)
                return await behavior(request, context)
            return bound

        def stream(behavior):
            async def bound(request, context):
                current_claims.set(claims)
                async for response in behavior(request, context):
                    yield response
            return bound

        return _rewrap(handler, unary, stream)


def _deny_unary(exc: DomainError):
    def wrap(behavior):
        async def denied(request, context):
            await abort_with(context, exc)
        return denied
    return wrap


def _deny_stream(exc: DomainError):
    def wrap(behavior):
        async def denied(request, context):
            await abort_with(context, exc)
            yield  # pragma: no cover
        return denied
    return wrap
