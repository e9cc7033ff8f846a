"""
Company Service Application.

REST service storing companies in its own SQL store.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from userflow.core import health
from userflow.core.config import get_app_config, get_settings
from userflow.core.database import Database
from userflow.core.exception_handlers import register_exception_handlers
from userflow.core.logging import bind_source, get_logger, setup_logging
from userflow.core.middleware import RequestContextMiddleware
from userflow.company.routes import router as companies_router
from userflow.models.company import Company
from userflow.tracing.provider import setup_tracing

logger = get_logger(__name__)

_app: FastAPI | None = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    app_config = get_app_config()
    setup_logging(level=app_config.logging.level)
    bind_source("company")
    shutdown_tracing = setup_tracing(
        app_config.observability.tracing,
        service_name=f"{app_config.observability.tracing.service_name}-company",
        otlp_endpoint=get_settings().otel_exporter_otlp_endpoint,
    )

    if getattr(app.state, "database", None) is None:
        app.state.database = Database.from_config(app_config.database.companies)
    await app.state.database.create_tables(Company)
    app.state.health_checks = {"database": health.database_check(app.state.database)}

    logger.info("Company service starting", extra={"env": app_config.application.environment})
    yield
    logger.info("Company service shutting down")
    await app.state.database.dispose()
    shutdown_tracing()


def create_app(database: Database | None = None) -> FastAPI:
    """
    Create and configure the company service application.

    Args:
        database: Store to use; built from database.yaml at startup when
            omitted
    """
    app_settings = get_app_config().application

    app = FastAPI(
        title=f"{app_settings.name} company service",
        description="Company CRUD service",
        version=app_settings.version,
        docs_url="/docs" if app_settings.debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.database = database

    app.add_middleware(RequestContextMiddleware, source="company")
    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(companies_router, prefix="/companies", tags=["companies"])

    return app


def get_app() -> FastAPI:
    """Get the application instance (lazy initialization)."""
    global _app
    if _app is None:
        _app = create_app()
    return _app


# For uvicorn: `uvicorn userflow.company.app:app`
def __getattr__(name: str) -> FastAPI:
    """Support lazy access to `app` for uvicorn compatibility."""
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
