"""gRPC servicers for ``users.v1``.

Servicers decode messages into domain inputs, run the blocking service
call in a worker thread under the per-call deadline, and abort with the
status mapped from the domain error.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable

import grpc

from domain.model.claims import Claim
from domain.model.errors import DomainError
from domain.model.user import NewUser, User, UserPatch
from rpc import messages
from rpc.errors import abort_with
from rpc.interceptors import MethodPolicy
from services.user_service import UserService
from utils.concurrency import run_with_timeout
from utils.config import Settings

logger = logging.getLogger(__name__)


def method_path(service: str, method: str) -> str:
    return f"/{service}/{method}"


def to_timestamp(value: datetime | None):
    """UTC instant to ``google.protobuf.Timestamp``; None stays unset."""
    if value is None:
        return None
    timestamp = messages.Timestamp()
    timestamp.FromDatetime(value.astimezone(timezone.utc))
    return timestamp


def from_timestamp(timestamp) -> datetime:
    return timestamp.ToDatetime(tzinfo=timezone.utc)


def user_to_message(user: User):
    message = messages.User(
        id=user.id or "",
        name=user.name,
        surnames=user.surnames,
        email=user.email,
        claims=list(user.claim_ids),
    )
    if user.created_at is not None:
        message.created_at.CopyFrom(to_timestamp(user.created_at))
    if user.updated_at is not None:
        message.updated_at.CopyFrom(to_timestamp(user.updated_at))
    return message


def new_user_from_message(request) -> NewUser:
    return NewUser(
        email=request.email,
        password=request.password,
        name=request.name,
        surnames=request.surnames,
        claim_ids=tuple(request.claims),
    )


def patch_from_message(request) -> UserPatch:
    """Only fields present on the wire end up in the patch."""
    def optional(field: str) -> str | None:
        return getattr(request, field).value if request.HasField(field) else None

    return UserPatch(
        name=optional("name"),
        surnames=optional("surnames"),
        email=optional("email"),
        old_password=optional("old_password"),
        new_password=optional("new_password"),
        claim_ids=tuple(request.claims.ids) if request.HasField("claims") else None,
    )


class _Servicer:
    def __init__(self, service: UserService, timeout: float):
        self.service = service
        self.timeout = timeout

    async def _call(self, context: grpc.aio.ServicerContext, func: Callable[..., Any], *args: Any) -> Any:
        """Run ``func`` within the configured timeout or the client deadline, whichever is shorter."""
        timeout = self.timeout
        remaining = context.time_remaining()
        if remaining is not None:
            timeout = min(timeout, max(remaining, 0.0))
        try:
            return await run_with_timeout(func, *args, timeout=timeout)
        except DomainError as e:
            await abort_with(context, e)


class UserServicer(_Servicer):
    def method_policies(self) -> list[MethodPolicy]:
        """Methods that need a bearer token, and the claims each one requires."""
        protected = {
            "GetAll": (),
            "GetByEmail": (),
            "GetById": (),
            "Update": (),
            "Delete": (Claim.ADMIN.label,),
            "GetClaims": (),
        }
        return [
            MethodPolicy(method_path(messages.USER_SERVICE, name), claims)
            for name, claims in protected.items()
        ]

    async def Login(self, request, context):
        result = await self._call(context, self.service.login, request.email, request.password)
        return messages.LoginResponse(user=user_to_message(result.user), token=result.token)

    async def Create(self, request, context):
        user_id = await self._call(context, self.service.create, new_user_from_message(request))
        return messages.CreateUserResponse(inserted_id=user_id)

    async def CreateMany(self, request, context):
        new_users = [new_user_from_message(item) for item in request.users]
        user_ids = await self._call(context, self.service.create_many, new_users)
        return messages.CreateManyResponse(inserted_ids=user_ids)

    async def GetAll(self, request, context):
        users = await self._call(context, self.service.get_all)
        for user in users:
            yield user_to_message(user)

    async def GetByEmail(self, request, context):
        user = await self._call(context, self.service.get_by_email, request.email)
        return user_to_message(user)

    async def GetById(self, request, context):
        user = await self._call(context, self.service.get_by_id, request.id)
        return user_to_message(user)

    async def Update(self, request, context):
        await self._call(context, self.service.update, request.id, patch_from_message(request))
        return messages.Empty()

    async def Delete(self, request, context):
        await self._call(context, self.service.delete, request.id)
        return messages.Empty()

    async def GetClaims(self, request, context):
        return messages.ClaimsResponse(claims=dict(self.service.get_claims()))

    def generic_handler(self) -> grpc.GenericRpcHandler:
        unary = grpc.unary_unary_rpc_method_handler
        return grpc.method_handlers_generic_handler(messages.USER_SERVICE, {
            "Login": unary(
                self.Login,
                request_deserializer=messages.LoginRequest.FromString,
                response_serializer=messages.LoginResponse.SerializeToString,
            ),
            "Create": unary(
                self.Create,
                request_deserializer=messages.CreateUserRequest.FromString,
                response_serializer=messages.CreateUserResponse.SerializeToString,
            ),
            "CreateMany": unary(
                self.CreateMany,
                request_deserializer=messages.CreateManyRequest.FromString,
                response_serializer=messages.CreateManyResponse.SerializeToString,
            ),
            "GetAll": grpc.unary_stream_rpc_method_handler(
                self.GetAll,
                request_deserializer=messages.Empty.FromString,
                response_serializer=messages.User.SerializeToString,
            ),
            "GetByEmail": unary(
                self.GetByEmail,
                request_deserializer=messages.GetByEmailRequest.FromString,
                response_serializer=messages.User.SerializeToString,
            ),
            "GetById": unary(
                self.GetById,
                request_deserializer=messages.UserIdRequest.FromString,
                response_serializer=messages.User.SerializeToString,
            ),
            "Update": unary(
                self.Update,
                request_deserializer=messages.UpdateUserRequest.FromString,
                response_serializer=messages.Empty.SerializeToString,
            ),
            "Delete": unary(
                self.Delete,
                request_deserializer=messages.UserIdRequest.FromString,
                response_serializer=messages.Empty.SerializeToString,
            ),
            "GetClaims": unary(
                self.GetClaims,
                request_deserializer=messages.Empty.FromString,
                response_serializer=messages.ClaimsResponse.SerializeToString,
            ),
        })


class HealthServicer(_Servicer):
    def __init__(self, service: UserService, settings: Settings):
        super().__init__(service, settings.timeout)
        self.settings = settings

    async def HealthCheck(self, request, context):
        try:
            healthy = await run_with_timeout(self.service.ping, timeout=self.timeout)
        except DomainError as e:
            logger.warning("Health check failed", extra={"error": e.message})
            healthy = False
        return messages.HealthCheckResponse(
            status="healthy" if healthy else "unhealthy",
            version=self.settings.version,
            environment=self.settings.environment,
            database=self.settings.database,
            http_port=self.settings.http_port,
            grpc_port=self.settings.grpc_port,
            dsn=self.settings.public_dsn(),
        )

    def generic_handler(self) -> grpc.GenericRpcHandler:
        return grpc.method_handlers_generic_handler(messages.HEALTH_SERVICE, {
            "HealthCheck": grpc.unary_unary_rpc_method_handler(
                self.HealthCheck,
                request_deserializer=messages.Empty.FromString,
                response_serializer=messages.HealthCheckResponse.SerializeToString,
            ),
        })
