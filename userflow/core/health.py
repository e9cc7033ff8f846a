"""
Health Check Endpoints.

Shared by the gateway and the company service.

Endpoints:
- /health: Liveness check (process running)
- /health/ready: Readiness check (dependencies available)

Each application registers its readiness checks on
`app.state.health_checks` as a mapping of name to an async callable
returning a result dict with a "status" key.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from sqlalchemy import text

from userflow.core.database import Database
from userflow.core.logging import get_logger
from userflow.core.utils import utc_now

router = APIRouter()
logger = get_logger(__name__)

HealthCheck = Callable[[], Awaitable[dict[str, Any]]]

READY_TIMEOUT_SECONDS = 2.0


def database_check(database: Database) -> HealthCheck:
    """Readiness check running SELECT 1 against database."""

    async def check() -> dict[str, Any]:
        start = utc_now()
        try:
            async with database.session() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning("Database health check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "error": str(e)}
        latency_ms = int((utc_now() - start).total_seconds() * 1000)
        return {"status": "healthy", "latency_ms": latency_ms}

    return check


def broker_check(broker: Any) -> HealthCheck:
    """Readiness check pinging the message broker."""

    async def check() -> dict[str, Any]:
        try:
            alive = await broker.ping(timeout=READY_TIMEOUT_SECONDS)
        except Exception as e:
            logger.warning("Broker health check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "error": str(e)}
        return {"status": "healthy" if alive else "unhealthy"}

    return check


@router.get("/health")
async def health_check() -> dict[str, str]:
    """
    Liveness check.

    Returns 200 if the process is running. No dependency checks.
    """
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> dict[str, Any]:
    """
    Readiness check.

    Runs the application's registered checks in parallel and returns 503
    if any of them is unhealthy.
    """
    registered: dict[str, HealthCheck] = getattr(request.app.state, "health_checks", {})
    checks: dict[str, dict[str, Any]] = {
        name: {"status": "error", "error": "check did not run"} for name in registered
    }

    try:
        async with asyncio.timeout(READY_TIMEOUT_SECONDS):
            async with asyncio.TaskGroup() as tg:
                tasks = {name: tg.create_task(check()) for name, check in registered.items()}
            checks = {name: task.result() for name, task in tasks.items()}
    except* Exception as eg:
        for exc in eg.exceptions:
            logger.warning("Health check task failed", extra={"error": str(exc)})

    unhealthy_checks = [
        name for name, check in checks.items()
        if check.get("status") != "healthy"
    ]

    if unhealthy_checks:
        logger.warning(
            "Readiness check failed",
            extra={"unhealthy": unhealthy_checks, "checks": checks},
        )
        raise HTTPException(
            status_code=503,
            detail={
                "status": "unhealthy",
                "checks": checks,
                "timestamp": utc_now().isoformat(),
            },
        )

    return {
        "status": "healthy",
        "checks": checks,
        "timestamp": utc_now().isoformat(),
    }
