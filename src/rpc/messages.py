"""Protocol Buffers messages for the ``users.v1`` package.

The file descriptor is assembled here and registered in the default
descriptor pool when the module is imported, so no generated ``_pb2``
modules are needed. The layout corresponds to::

    message User {
      string id = 1; string name = 2; string surnames = 3; string email = 4;
      repeated int32 claims = 5;
      google.protobuf.Timestamp created_at = 6;
      google.protobuf.Timestamp updated_at = 7;
    }
    message UpdateUserRequest {
      string id = 1;
      google.protobuf.StringValue name = 2; ... new_password = 6;
      ClaimIds claims = 7;   // presence means "replace the claims"
    }
    message ClaimsResponse { map<int32, string> claims = 1; }

Field numbers are part of the wire contract and must not change.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf import empty_pb2, timestamp_pb2, wrappers_pb2

PACKAGE = "users.v1"
USER_SERVICE = f"{PACKAGE}.UserService"
HEALTH_SERVICE = f"{PACKAGE}.HealthService"

_FILE_NAME = "users/v1/users.proto"

_F = descriptor_pb2.FieldDescriptorProto
_STRING = _F.TYPE_STRING
_INT32 = _F.TYPE_INT32
_MESSAGE = _F.TYPE_MESSAGE
_REPEATED = _F.LABEL_REPEATED

_TIMESTAMP = ".google.protobuf.Timestamp"
_STRING_VALUE = ".google.protobuf.StringValue"
_EMPTY = ".google.protobuf.Empty"


def _message(file: descriptor_pb2.FileDescriptorProto, name: str, *fields: tuple) -> descriptor_pb2.DescriptorProto:
    """Add a message to ``file``. Each field is ``(name, number, type[, type_name[, label]])``."""
    message = file.message_type.add(name=name)
    for field in fields:
        _add_field(message, *field)
    return message


def _add_field(message, name, number, type_, type_name=None, label=_F.LABEL_OPTIONAL):
    field = message.field.add(name=name, number=number, type=type_, label=label, json_name=_json_name(name))
    if type_name:
        field.type_name = type_name
    return field


def _json_name(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _local(name: str) -> str:
    return f".{PACKAGE}.{name}"


def _service(file, name: str, *methods: tuple) -> None:
    """Each method is ``(name, input, output[, server_streaming])``."""
    service = file.service.add(name=name)
    for method_name, input_type, output_type, *streaming in methods:
        service.method.add(
            name=method_name,
            input_type=input_type,
            output_type=output_type,
            server_streaming=bool(streaming and streaming[0]),
        )


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    file = descriptor_pb2.FileDescriptorProto(name=_FILE_NAME, package=PACKAGE, syntax="proto3")
    file.dependency.extend([
        timestamp_pb2.DESCRIPTOR.name,
        wrappers_pb2.DESCRIPTOR.name,
        empty_pb2.DESCRIPTOR.name,
    ])

    _message(
        file, "User",
        ("id", 1, _STRING),
        ("name", 2, _STRING),
        ("surnames", 3, _STRING),
        ("email", 4, _STRING),
        ("claims", 5, _INT32, None, _REPEATED),
        ("created_at", 6, _MESSAGE, _TIMESTAMP),
        ("updated_at", 7, _MESSAGE, _TIMESTAMP),
    )
    _message(file, "LoginRequest", ("email", 1, _STRING), ("password", 2, _STRING))
    _message(file, "LoginResponse", ("user", 1, _MESSAGE, _local("User")), ("token", 2, _STRING))
    _message(
        file, "CreateUserRequest",
        ("name", 1, _STRING),
        ("surnames", 2, _STRING),
        ("email", 3, _STRING),
        ("password", 4, _STRING),
        ("claims", 5, _INT32, None, _REPEATED),
    )
    _message(file, "CreateUserResponse", ("inserted_id", 1, _STRING))
    _message(file, "CreateManyRequest", ("users", 1, _MESSAGE, _local("CreateUserRequest"), _REPEATED))
    _message(file, "CreateManyResponse", ("inserted_ids", 1, _STRING, None, _REPEATED))
    _message(file, "GetByEmailRequest", ("email", 1, _STRING))
    _message(file, "UserIdRequest", ("id", 1, _STRING))
    _message(file, "ClaimIds", ("ids", 1, _INT32, None, _REPEATED))
    _message(
        file, "UpdateUserRequest",
        ("id", 1, _STRING),
        ("name", 2, _MESSAGE, _STRING_VALUE),
        ("surnames", 3, _MESSAGE, _STRING_VALUE),
        ("email", 4, _MESSAGE, _STRING_VALUE),
        ("old_password", 5, _MESSAGE, _STRING_VALUE),
        ("new_password", 6, _MESSAGE, _STRING_VALUE),
        ("claims", 7, _MESSAGE, _local("ClaimIds")),
    )

    claims_response = _message(
        file, "ClaimsResponse",
        ("claims", 1, _MESSAGE, _local("ClaimsResponse.ClaimsEntry"), _REPEATED),
    )
    entry = claims_response.nested_type.add(name="ClaimsEntry")
    entry.options.map_entry = True
    _add_field(entry, "key", 1, _INT32)
    _add_field(entry, "value", 2, _STRING)

    _message(
        file, "HealthCheckResponse",
        ("status", 1, _STRING),
        ("version", 2, _STRING),
        ("environment", 3, _STRING),
        ("database", 4, _STRING),
        ("http_port", 5, _INT32),
        ("grpc_port", 6, _INT32),
        ("dsn", 7, _STRING),
    )

    _service(
        file, "UserService",
        ("Login", _local("LoginRequest"), _local("LoginResponse")),
        ("Create", _local("CreateUserRequest"), _local("CreateUserResponse")),
        ("CreateMany", _local("CreateManyRequest"), _local("CreateManyResponse")),
        ("GetAll", _EMPTY, _local("User"), True),
        ("GetByEmail", _local("GetByEmailRequest"), _local("User")),
        ("GetById", _local("UserIdRequest"), _local("User")),
        ("Update", _local("UpdateUserRequest"), _EMPTY),
        ("Delete", _local("UserIdRequest"), _EMPTY),
        ("GetClaims", _EMPTY, _local("ClaimsResponse")),
    )
    _service(file, "HealthService", ("HealthCheck", _EMPTY, _local("HealthCheckResponse")))
    return file


DESCRIPTOR = descriptor_pool.Default().AddSerializedFile(_build_file().SerializeToString())


def _class(name: str):
    return message_factory.GetMessageClass(descriptor_pool.Default().FindMessageTypeByName(f"{PACKAGE}.{name}"))


User = _class("User")
LoginRequest = _class("LoginRequest")
LoginResponse = _class("LoginResponse")
CreateUserRequest = _class("CreateUserRequest")
CreateUserResponse = _class("CreateUserResponse")
CreateManyRequest = _class("CreateManyRequest")
CreateManyResponse = _class("CreateManyResponse")
GetByEmailRequest = _class("GetByEmailRequest")
UserIdRequest = _class("UserIdRequest")
ClaimIds = _class("ClaimIds")
UpdateUserRequest = _class("UpdateUserRequest")
ClaimsResponse = _class("ClaimsResponse")
HealthCheckResponse = _class("HealthCheckResponse")

Empty = empty_pb2.Empty
Timestamp = timestamp_pb2.Timestamp
StringValue = wrappers_pb2.StringValue
