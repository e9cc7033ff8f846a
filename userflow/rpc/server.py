"""
User RPC Server.

grpc.aio server exposing user.UserService over the users SQL store.
Each call rebuilds the caller's causal context from `traceparent` metadata,
runs inside its own span scope and database session, and maps application
errors onto gRPC status codes. A failing call never stops the server.
"""

from collections.abc import Awaitable, Callable

import grpc
from opentelemetry.trace import SpanKind

from userflow.core.database import Database
from userflow.core.exceptions import (
    ApplicationError,
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from userflow.core.logging import get_logger
from userflow.models.user import User
from userflow.rpc.codec import METHODS, SERVICE_NAME, decode_user, encode_message
from userflow.schemas.user import UserMessage
from userflow.services.user import UserService
from userflow.tracing.carrier import MessageCarrier
from userflow.tracing.propagation import extract
from userflow.tracing.scope import span_scope

logger = get_logger(__name__)

STATUS_FOR_ERROR: dict[type[ApplicationError], grpc.StatusCode] = {
    NotFoundError: grpc.StatusCode.NOT_FOUND,
    ConflictError: grpc.StatusCode.ALREADY_EXISTS,
    ValidationError: grpc.StatusCode.INVALID_ARGUMENT,
    DatabaseError: grpc.StatusCode.UNAVAILABLE,
}

UserOperation = Callable[[UserService], Awaitable[User]]


class UserServicer:
    """Implementation of user.UserService."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def _invoke(
        self,
        method: str,
        context: grpc.aio.ServicerContext,
        operation: UserOperation,
    ) -> UserMessage:
        ctx = extract(MessageCarrier.from_headers(context.invocation_metadata()))
        with span_scope(f"{SERVICE_NAME}/{method}", ctx, kind=SpanKind.SERVER):
            try:
                async with self._database.session() as session:
                    user = await operation(UserService(session))
                    response = UserMessage.model_validate(user)
            except ApplicationError as exc:
                status = STATUS_FOR_ERROR.get(type(exc), grpc.StatusCode.INTERNAL)
                logger.warning(
                    "User RPC rejected",
                    extra={"method": method, "status": status.name, "code": exc.code, "message": exc.message},
                )
                await context.abort(status, exc.message)
                raise
            logger.info("User RPC served", extra={"method": method, "user_id": response.id})
            return response

    async def CreateUser(self, request: UserMessage, context: grpc.aio.ServicerContext) -> UserMessage:
        return await self._invoke("CreateUser", context, lambda svc: svc.create_user(request))

    async def GetUser(self, request: UserMessage, context: grpc.aio.ServicerContext) -> UserMessage:
        return await self._invoke("GetUser", context, lambda svc: svc.get_user(request.id))

    async def UpdateUser(self, request: UserMessage, context: grpc.aio.ServicerContext) -> UserMessage:
        return await self._invoke("UpdateUser", context, lambda svc: svc.update_user(request))

    async def DeleteUser(self, request: UserMessage, context: grpc.aio.ServicerContext) -> UserMessage:
        return await self._invoke("DeleteUser", context, lambda svc: svc.delete_user(request.id))


def build_generic_handler(servicer: UserServicer) -> grpc.GenericRpcHandler:
    """Register the servicer's methods under user.UserService."""
    handlers = {
        method: grpc.unary_unary_rpc_method_handler(
            getattr(servicer, method),
            request_deserializer=decode_user,
            response_serializer=encode_message,
        )
        for method in METHODS
    }
    return grpc.method_handlers_generic_handler(SERVICE_NAME, handlers)


async def start_server(
    database: Database,
    host: str,
    port: int,
    max_concurrent_rpcs: int | None = None,
) -> tuple[grpc.aio.Server, int]:
    """
    Start the user RPC server.

    Returns:
        Tuple of (server, bound_port). Port 0 binds an ephemeral port.
    """
    server = grpc.aio.server(maximum_concurrent_rpcs=max_concurrent_rpcs)
    server.add_generic_rpc_handlers((build_generic_handler(UserServicer(database)),))
    bound_port = server.add_insecure_port(f"{host}:{port}")
    await server.start()
    logger.info("User RPC server listening", extra={"host": host, "port": bound_port})
    return server, bound_port


async def serve() -> None:
    """
    Run the user RPC service until terminated.

    Raises:
        ConfigurationError: If tracing is misconfigured
    """
    from userflow.core.config import get_app_config, get_settings
    from userflow.core.logging import bind_source, setup_logging
    from userflow.tracing.provider import setup_tracing

    app_config = get_app_config()
    setup_logging(level=app_config.logging.level)
    bind_source("rpc")
    shutdown_tracing = setup_tracing(
        app_config.observability.tracing,
        service_name=f"{app_config.observability.tracing.service_name}-user-rpc",
        otlp_endpoint=get_settings().otel_exporter_otlp_endpoint,
    )

    database = Database.from_config(app_config.database.users)
    await database.create_tables(User)

    listen = app_config.rpc.user_service
    server, _ = await start_server(
        database, listen.listen_host, listen.listen_port, listen.max_concurrent_rpcs,
    )
    try:
        await server.wait_for_termination()
    finally:
        await server.stop(grace=5)
        await database.dispose()
        shutdown_tracing()
        logger.info("User RPC server stopped")
