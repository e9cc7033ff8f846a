"""
Gateway Application.

HTTP entry point for users and companies. Users are served through the user
RPC service (synchronously) or the work queue (asynchronously); companies
are proxied to the company REST service.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from userflow.core import health
from userflow.core.config import (
    get_app_config,
    get_company_http_endpoint,
    get_create_user_subject,
    get_settings,
    get_user_grpc_endpoint,
)
from userflow.core.exception_handlers import register_exception_handlers
from userflow.core.logging import bind_source, get_logger, setup_logging
from userflow.core.middleware import RequestContextMiddleware
from userflow.events.broker import create_event_broker, create_work_queue
from userflow.gateway.company_client import CompanyClient
from userflow.gateway.dependencies import GatewayDependencies
from userflow.gateway.routes import companies, users
from userflow.rpc.client import UserServiceClient
from userflow.tracing.provider import setup_tracing

logger = get_logger(__name__)

_app: FastAPI | None = None


async def build_dependencies() -> GatewayDependencies:
    """
    Connect the gateway's collaborators from configuration.

    Raises:
        ConfigurationError: If a required environment value is missing
    """
    app_config = get_app_config()
    timeouts = app_config.application.timeouts

    subject = get_create_user_subject()
    user_endpoint = get_user_grpc_endpoint()
    company_endpoint = get_company_http_endpoint()

    broker = create_event_broker()
    await broker.connect()
    work_queue = create_work_queue(broker)
    await work_queue.ensure_stream()

    return GatewayDependencies(
        user_client=UserServiceClient(user_endpoint, timeout=timeouts.sync_rpc),
        company_client=CompanyClient(company_endpoint, timeout=timeouts.company_http),
        work_queue=work_queue,
        create_user_subject=subject,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    app_config = get_app_config()
    setup_logging(level=app_config.logging.level)
    bind_source("gateway")
    shutdown_tracing = setup_tracing(
        app_config.observability.tracing,
        service_name=f"{app_config.observability.tracing.service_name}-gateway",
        otlp_endpoint=get_settings().otel_exporter_otlp_endpoint,
    )

    if getattr(app.state, "deps", None) is None:
        app.state.deps = await build_dependencies()
    app.state.health_checks = {"broker": health.broker_check(app.state.deps.work_queue.broker)}

    logger.info(
        "Gateway starting",
        extra={
            "app_name": app_config.application.name,
            "env": app_config.application.environment,
        },
    )
    yield
    logger.info("Gateway shutting down")
    await app.state.deps.close()
    shutdown_tracing()


def create_app(deps: GatewayDependencies | None = None) -> FastAPI:
    """
    Create and configure the gateway application.

    Args:
        deps: Prebuilt dependencies; built from configuration at startup
            when omitted
    """
    app_config = get_app_config()
    app_settings = app_config.application

    app = FastAPI(
        title=f"{app_settings.name} gateway",
        description=app_settings.description,
        version=app_settings.version,
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
        lifespan=lifespan,
    )
    app.state.deps = deps

    app.add_middleware(RequestContextMiddleware, source="gateway")

    cors_origins = app_settings.cors.origins
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(users.router, prefix="/users", tags=["users"])
    app.include_router(users.async_router, prefix="/async", tags=["users"])
    app.include_router(companies.router, prefix="/companies", tags=["companies"])

    return app


def get_app() -> FastAPI:
    """
    Get the application instance (lazy initialization).

    Use this instead of importing `app` directly to avoid
    import-time configuration errors.
    """
    global _app
    if _app is None:
        _app = create_app()
    return _app


# For uvicorn: `uvicorn userflow.gateway.app:app`
def __getattr__(name: str) -> FastAPI:
    """Support lazy access to `app` for uvicorn compatibility."""
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
