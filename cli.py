#!/usr/bin/env python3
"""
Userflow CLI.

Primary entry point for all services.
Use --service to select what to run, --action to control lifecycle.

Usage:
    python cli.py --help
    python cli.py --service gateway --verbose
    python cli.py --service gateway --action stop
    python cli.py --service user-rpc
    python cli.py --service company
    python cli.py --service worker
    python cli.py --service config
    python cli.py --service test --test-type unit
"""

import asyncio
import os
import signal
import subprocess
import sys
from pathlib import Path

import click
import structlog

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from userflow.core.exceptions import ConfigurationError
from userflow.core.logging import get_logger, setup_logging

PORT_BOUND_SERVICES = {"gateway", "company", "user-rpc"}


def validate_project_root() -> Path:
    """Validate that we're running from the project root."""
    if not (PROJECT_ROOT / ".project_root").exists():
        click.echo(
            click.style("Error: .project_root not found. Run from project root.", fg="red"),
            err=True,
        )
        sys.exit(1)
    return PROJECT_ROOT


def _fail_configuration(logger, exc: Exception) -> None:
    """Report a configuration problem and exit. Never returns."""
    logger.error("Configuration error", extra={"error": str(exc)})
    click.echo(click.style(f"Error: {exc}", fg="red"), err=True)
    sys.exit(1)


def _find_process_on_port(port: int) -> list[int]:
    """Find PIDs listening on a port."""
    result = subprocess.run(
        ["lsof", "-ti", f":{port}"],
        capture_output=True, text=True,
    )
    pids = result.stdout.strip().split("\n")
    return [int(p) for p in pids if p.strip()]


def _service_stop(logger, service: str, port: int) -> None:
    """Stop a running service by finding its process on the port."""
    pids = _find_process_on_port(port)
    if not pids:
        click.echo(f"No {service} running on port {port}.")
        return

    for pid in pids:
        os.kill(pid, signal.SIGINT)
        logger.info("Sent SIGINT", extra={"service": service, "pid": pid, "port": port})

    click.echo(f"{service} on port {port} stopped (PID: {', '.join(str(p) for p in pids)}).")


def _service_status(logger, service: str, port: int) -> None:
    """Check if a service is running on a port."""
    pids = _find_process_on_port(port)
    if pids:
        click.echo(f"{service} is running on port {port} (PID: {', '.join(str(p) for p in pids)}).")
    else:
        click.echo(f"{service} is not running on port {port}.")


def _get_service_port(service: str, port: int | None) -> int:
    """Get the port from argument or config."""
    if port is not None:
        return port
    from userflow.core.config import get_app_config

    app_config = get_app_config()
    if service == "user-rpc":
        return app_config.rpc.user_service.listen_port
    if service == "company":
        return app_config.application.company.port
    return app_config.application.gateway.port


@click.command()
@click.option(
    "--service", "-s",
    type=click.Choice(["gateway", "user-rpc", "company", "worker", "config", "test", "info"]),
    default="info",
    help="Service or command to run.",
)
@click.option(
    "--action", "-a",
    type=click.Choice(["start", "stop", "restart", "status"]),
    default="start",
    help="Lifecycle action for port-bound services (gateway, user-rpc, company).",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output (INFO level logging).",
)
@click.option(
    "--debug", "-d",
    is_flag=True,
    help="Enable debug output (DEBUG level logging).",
)
@click.option(
    "--host",
    default=None,
    help="Server host (gateway, company).",
)
@click.option(
    "--port",
    default=None,
    type=int,
    help="Server port.",
)
@click.option(
    "--reload",
    is_flag=True,
    help="Enable auto-reload (gateway, company).",
)
@click.option(
    "--test-type",
    type=click.Choice(["all", "unit", "integration", "e2e"]),
    default="all",
    help="Test type to run.",
)
@click.option(
    "--coverage",
    is_flag=True,
    help="Run tests with coverage.",
)
def main(
    service: str,
    action: str,
    verbose: bool,
    debug: bool,
    host: str | None,
    port: int | None,
    reload: bool,
    test_type: str,
    coverage: bool,
) -> None:
    """
    Userflow CLI.

    Use --service to select what to run. For port-bound services
    (gateway, user-rpc, company), use --action to control lifecycle
    (start/stop/restart/status).

    \b
    Examples:
        python cli.py --service gateway --verbose
        python cli.py --service gateway --action status
        python cli.py --service user-rpc --verbose
        python cli.py --service company --port 8091
        python cli.py --service worker --verbose
        python cli.py --service config
        python cli.py --service test --test-type unit --coverage
        python cli.py --service info
    """
    validate_project_root()

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = "WARNING"

    setup_logging(level=log_level, format_type="console")

    structlog.contextvars.bind_contextvars(source="cli")

    logger = get_logger(__name__)

    logger.debug("CLI invoked", extra={"service": service, "action": action, "log_level": log_level})

    if service in PORT_BOUND_SERVICES and action != "start":
        service_port = _get_service_port(service, port)

        if action == "stop":
            _service_stop(logger, service, service_port)
            return
        elif action == "status":
            _service_status(logger, service, service_port)
            return
        elif action == "restart":
            _service_stop(logger, service, service_port)
            import time
            time.sleep(2)

    if service == "gateway":
        run_gateway(logger, host, port, reload)
    elif service == "company":
        run_company(logger, host, port, reload)
    elif service == "user-rpc":
        run_user_rpc(logger, port)
    elif service == "worker":
        run_worker(logger)
    elif service == "config":
        show_config(logger)
    elif service == "test":
        run_tests(logger, test_type, coverage)
    elif service == "info":
        show_info(logger)


def check_gateway_settings() -> None:
    """
    Resolve every environment value the gateway needs.

    Raises:
        ConfigurationError: Naming the first missing value
    """
    from userflow.core.config import (
        get_company_http_endpoint,
        get_create_user_subject,
        get_nats_url,
        get_user_grpc_endpoint,
        get_users_stream,
    )

    get_nats_url()
    get_create_user_subject()
    get_users_stream()
    get_user_grpc_endpoint()
    get_company_http_endpoint()


def check_worker_settings() -> None:
    """
    Resolve every environment value the async worker needs.

    Raises:
        ConfigurationError: Naming the first missing value
    """
    from userflow.core.config import (
        get_create_user_subject,
        get_nats_url,
        get_user_grpc_endpoint,
        get_users_stream,
    )

    get_nats_url()
    get_create_user_subject()
    get_users_stream()
    get_user_grpc_endpoint()


def _run_uvicorn(logger, name: str, app_path: str, host: str, port: int, reload: bool) -> None:
    logger.info(
        f"Starting {name}",
        extra={"host": host, "port": port, "reload": reload},
    )

    cmd = [
        sys.executable, "-m", "uvicorn",
        app_path,
        "--host", host,
        "--port", str(port),
    ]

    if reload:
        cmd.append("--reload")

    click.echo(f"Starting {name} at http://{host}:{port}")
    click.echo("Press Ctrl+C to stop\n")

    try:
        subprocess.run(cmd, check=True)
    except KeyboardInterrupt:
        logger.info(f"{name} stopped")
    except subprocess.CalledProcessError as e:
        logger.error(f"{name} failed to start", extra={"exit_code": e.returncode})
        sys.exit(e.returncode)


def run_gateway(logger, host: str | None, port: int | None, reload: bool) -> None:
    """Start the HTTP gateway."""
    from userflow.core.config import get_app_config

    try:
        check_gateway_settings()
        server_config = get_app_config().application.gateway
    except (ConfigurationError, ValueError, FileNotFoundError) as e:
        _fail_configuration(logger, e)

    _run_uvicorn(
        logger, "gateway", "userflow.gateway.app:app",
        host or server_config.host, port or server_config.port, reload,
    )


def run_company(logger, host: str | None, port: int | None, reload: bool) -> None:
    """Start the company REST service."""
    from userflow.core.config import get_app_config

    try:
        server_config = get_app_config().application.company
    except (ValueError, FileNotFoundError) as e:
        _fail_configuration(logger, e)

    _run_uvicorn(
        logger, "company service", "userflow.company.app:app",
        host or server_config.host, port or server_config.port, reload,
    )


def run_user_rpc(logger, port: int | None) -> None:
    """Start the user gRPC service."""
    from userflow.core.config import get_app_config
    from userflow.rpc.server import serve

    try:
        app_config = get_app_config()
    except (ValueError, FileNotFoundError) as e:
        _fail_configuration(logger, e)

    if port is not None:
        app_config.rpc.user_service.listen_port = port

    listen = app_config.rpc.user_service
    click.echo(f"Starting user RPC service on {listen.listen_host}:{listen.listen_port}")
    click.echo("Press Ctrl+C to stop\n")

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("User RPC service stopped")
    except ConfigurationError as e:
        _fail_configuration(logger, e)


def run_worker(logger) -> None:
    """Start the async user creation worker (FastStream)."""
    try:
        check_worker_settings()
    except (ConfigurationError, ValueError, FileNotFoundError) as e:
        _fail_configuration(logger, e)

    logger.info("Starting async worker")

    cmd = [
        sys.executable, "-m", "faststream",
        "run", "--factory",
        "userflow.events.worker:create_worker_app",
    ]

    click.echo("Starting async user creation worker")
    click.echo("Press Ctrl+C to stop\n")

    try:
        subprocess.run(cmd, check=True)
    except KeyboardInterrupt:
        logger.info("Worker stopped")
    except subprocess.CalledProcessError as e:
        logger.error("Worker failed to start", extra={"exit_code": e.returncode})
        sys.exit(e.returncode)


def _echo_section(title: str, values: dict) -> None:
    click.echo(f"\n{title}:")
    click.echo("-" * 40)
    for key, value in values.items():
        if isinstance(value, dict):
            click.echo(f"  {key}:")
            for k, v in value.items():
                click.echo(f"    {k}: {v}")
        else:
            click.echo(f"  {key}: {value}")


def show_config(logger) -> None:
    """Display loaded configuration."""
    click.echo("Application Configuration:")

    try:
        from userflow.core.config import get_app_config, get_settings

        app_config = get_app_config()

        _echo_section("Application Settings (from YAML)", app_config.application.model_dump())
        _echo_section("Database Settings (from YAML)", app_config.database.model_dump())
        _echo_section("Messaging Settings (from YAML)", app_config.messaging.model_dump())
        _echo_section("RPC Settings (from YAML)", app_config.rpc.model_dump())
        _echo_section("Observability Settings (from YAML)", app_config.observability.model_dump())
        _echo_section("Logging Settings (from YAML)", app_config.logging.model_dump())
        _echo_section(
            "Environment",
            {key: value if value else "(not set)" for key, value in get_settings().model_dump().items()},
        )

        logger.info("Configuration displayed successfully")

    except (ValueError, FileNotFoundError) as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        click.echo(click.style(f"Error loading configuration: {e}", fg="red"))
        sys.exit(1)


def run_tests(logger, test_type: str, coverage: bool) -> None:
    """Run the test suite."""
    logger.info("Running tests", extra={"type": test_type, "coverage": coverage})

    cmd = [sys.executable, "-m", "pytest"]

    if test_type == "unit":
        cmd.append("tests/unit")
    elif test_type == "integration":
        cmd.append("tests/integration")
    elif test_type == "e2e":
        cmd.append("tests/e2e")
    else:
        cmd.append("tests/")

    cmd.append("-v")

    if coverage:
        cmd.extend(["--cov=userflow", "--cov-report=term-missing"])

    click.echo(f"Running: {' '.join(cmd)}\n")

    try:
        result = subprocess.run(cmd)
        sys.exit(result.returncode)
    except FileNotFoundError:
        logger.error("pytest not found. Install with: pip install pytest")
        sys.exit(1)


def show_info(logger) -> None:
    """Display application information."""
    click.echo("Userflow Services")
    click.echo("=" * 40)

    try:
        from userflow.core.config import get_app_config
        app_config = get_app_config()
        click.echo(f"Name: {app_config.application.name}")
        click.echo(f"Version: {app_config.application.version}")
        click.echo(f"Description: {app_config.application.description}")
    except (ValueError, FileNotFoundError) as e:
        logger.error(
            "Failed to load application configuration",
            extra={"error": str(e)},
        )
        click.echo(
            click.style(
                "Error: Could not load application.yaml configuration.",
                fg="red",
            ),
            err=True,
        )
        sys.exit(1)

    click.echo()
    click.echo("Services (--service):")
    click.echo("  gateway        HTTP gateway (users, async users, companies)")
    click.echo("  user-rpc       User gRPC service")
    click.echo("  company        Company REST service")
    click.echo("  worker         Async user creation worker")
    click.echo("  config         Display configuration")
    click.echo("  test           Run test suite")
    click.echo("  info           Show this information")
    click.echo()
    click.echo("Lifecycle actions (--action, for gateway, user-rpc, company):")
    click.echo("  start          Start the service (default)")
    click.echo("  stop           Stop a running service")
    click.echo("  restart        Stop then start")
    click.echo("  status         Check if running")
    click.echo()
    click.echo("Options:")
    click.echo("  --verbose, -v  Enable INFO level logging")
    click.echo("  --debug, -d    Enable DEBUG level logging")

    logger.debug("Info displayed")


if __name__ == "__main__":
    main()
