"""
User RPC Client.

Unary calls to the user gRPC service. Every call is bounded by a timeout
and carries the caller's causal context as `traceparent` metadata.

Call budgets:
    gateway (caller waiting)   - application.yaml timeouts.sync_rpc  (1s)
    async worker (no caller)   - application.yaml timeouts.async_rpc (30s)

Usage:
    client = UserServiceClient(get_user_grpc_endpoint(), timeout=1.0)
    user = await client.create_user(UserMessage(name="Alice"), ctx)
    await client.close()
"""

import grpc

from userflow.core.exceptions import (
    ApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    RpcTransportError,
    ValidationError,
)
from userflow.core.logging import get_logger
from userflow.rpc.codec import METHODS, decode_user, encode_message, method_path
from userflow.schemas.user import UserMessage
from userflow.tracing.carrier import MessageCarrier
from userflow.tracing.context import CausalContext
from userflow.tracing.propagation import inject

logger = get_logger(__name__)

TRANSPORT_STATUS_CODES = frozenset({
    grpc.StatusCode.DEADLINE_EXCEEDED,
    grpc.StatusCode.UNAVAILABLE,
    grpc.StatusCode.CANCELLED,
})


def map_rpc_error(method: str, exc: grpc.aio.AioRpcError) -> ApplicationError:
    """Translate a gRPC status into the application error hierarchy."""
    code = exc.code()
    details = exc.details() or code.name
    if code == grpc.StatusCode.NOT_FOUND:
        return NotFoundError(details)
    if code == grpc.StatusCode.ALREADY_EXISTS:
        return ConflictError(details)
    if code == grpc.StatusCode.INVALID_ARGUMENT:
        return ValidationError(details)
    if code in TRANSPORT_STATUS_CODES:
        return RpcTransportError(f"{method} failed: {code.name}")
    return ExternalServiceError(f"{method} failed: {code.name}: {details}")


class UserServiceClient:
    """Timeout-bounded client for user.UserService."""

    def __init__(
        self,
        target: str,
        timeout: float,
        channel: grpc.aio.Channel | None = None,
    ) -> None:
        self.target = target
        self.timeout = timeout
        self._channel = channel or grpc.aio.insecure_channel(target)
        self._calls = {
            method: self._channel.unary_unary(
                method_path(method),
                request_serializer=encode_message,
                response_deserializer=decode_user,
            )
            for method in METHODS
        }

    async def _call(
        self,
        method: str,
        request: UserMessage,
        ctx: CausalContext | None,
        timeout: float | None,
    ) -> UserMessage:
        metadata = inject(ctx, MessageCarrier()).to_metadata()
        try:
            return await self._calls[method](
                request,
                timeout=timeout if timeout is not None else self.timeout,
                metadata=metadata,
            )
        except grpc.aio.AioRpcError as exc:
            error = map_rpc_error(method, exc)
            logger.warning(
                "User RPC failed",
                extra={"method": method, "status": exc.code().name, "error_code": error.code},
            )
            raise error from exc

    async def create_user(
        self, user: UserMessage, ctx: CausalContext | None = None, timeout: float | None = None,
    ) -> UserMessage:
        return await self._call("CreateUser", user, ctx, timeout)

    async def get_user(
        self, user_id: str, ctx: CausalContext | None = None, timeout: float | None = None,
    ) -> UserMessage:
        return await self._call("GetUser", UserMessage(id=user_id), ctx, timeout)

    async def update_user(
        self, user: UserMessage, ctx: CausalContext | None = None, timeout: float | None = None,
    ) -> UserMessage:
        return await self._call("UpdateUser", user, ctx, timeout)

    async def delete_user(
        self, user_id: str, ctx: CausalContext | None = None, timeout: float | None = None,
    ) -> UserMessage:
        return await self._call("DeleteUser", UserMessage(id=user_id), ctx, timeout)

    async def close(self) -> None:
        await self._channel.close()
