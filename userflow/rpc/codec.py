"""
User RPC Codec.

The user service exchanges JSON-encoded UserMessage documents instead of
protobuf, so requests and responses are plain pydantic models on both
sides and no generated stubs are needed.
"""

from pydantic import BaseModel

from userflow.schemas.user import UserMessage

SERVICE_NAME = "user.UserService"

METHODS = ("CreateUser", "GetUser", "UpdateUser", "DeleteUser")


def method_path(method: str) -> str:
    """Fully-qualified gRPC method path, e.g. /user.UserService/CreateUser."""
    return f"/{SERVICE_NAME}/{method}"


def encode_message(message: BaseModel) -> bytes:
    return message.model_dump_json().encode("utf-8")


def decode_user(data: bytes) -> UserMessage:
    return UserMessage.model_validate_json(data)
