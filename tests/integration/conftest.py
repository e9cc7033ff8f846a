"""
Integration Test Fixtures.

Fixtures for integration tests - real database, a real user RPC server on an
ephemeral port and the real company service behind ASGITransport. Only the
NATS connection is replaced by a mock broker.
These fixtures build on the root conftest.py database fixtures.
"""

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from faststream.nats import JStream
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from userflow.core.database import Database
from userflow.core.health import broker_check
from userflow.events.queue import WorkQueue
from userflow.gateway.company_client import CompanyClient
from userflow.gateway.dependencies import GatewayDependencies
from userflow.rpc.client import UserServiceClient
from userflow.rpc.server import start_server

CREATE_USER_SUBJECT = "users.create"


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
async def user_rpc_client(database: Database) -> AsyncGenerator[UserServiceClient, None]:
    """
    Client connected to an in-process user RPC server on an ephemeral port.

    Usage:
        async def test_create(user_rpc_client):
            user = await user_rpc_client.create_user(UserMessage(name="Alice"))
    """
    server, port = await start_server(database, "127.0.0.1", 0)
    client = UserServiceClient(f"127.0.0.1:{port}", timeout=5.0)

    yield client

    await client.close()
    await server.stop(None)


@pytest.fixture
def company_app(database: Database) -> FastAPI:
    from userflow.company.app import create_app

    return create_app(database)


@pytest.fixture
async def company_client(company_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the company service."""
    async with AsyncClient(
        transport=ASGITransport(app=company_app),
        base_url="http://company",
    ) as test_client:
        yield test_client


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def fake_broker() -> MagicMock:
    """Stand-in for a connected NatsBroker. publish() acks immediately."""
    broker = MagicMock()
    broker.publish = AsyncMock(return_value=None)
    broker.close = AsyncMock()
    broker.ping = AsyncMock(return_value=True)
    return broker


@pytest.fixture
def work_queue(fake_broker: MagicMock) -> WorkQueue:
    return WorkQueue(
        fake_broker,
        JStream("USERS", subjects=[CREATE_USER_SUBJECT]),
        max_in_flight=4,
        publish_timeout=1.0,
    )


@pytest.fixture
def gateway_deps(
    user_rpc_client: UserServiceClient,
    company_app: FastAPI,
    work_queue: WorkQueue,
) -> GatewayDependencies:
    company_http = AsyncClient(transport=ASGITransport(app=company_app), base_url="http://company")
    return GatewayDependencies(
        user_client=user_rpc_client,
        company_client=CompanyClient("http://company", timeout=5.0, client=company_http),
        work_queue=work_queue,
        create_user_subject=CREATE_USER_SUBJECT,
    )


@pytest.fixture
async def gateway_client(
    gateway_deps: GatewayDependencies,
    fake_broker: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client for the gateway wired to the fixtures above.

    Usage:
        async def test_async_create(gateway_client, fake_broker):
            response = await gateway_client.post("/async/users", json={"name": "Alice"})
            assert response.status_code == 202
    """
    from userflow.gateway.app import create_app

    app = create_app(gateway_deps)
    app.state.health_checks = {"broker": broker_check(fake_broker)}

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://gateway",
    ) as test_client:
        yield test_client

    await gateway_deps.company_client.close()


# =============================================================================
# API Response Assertion Helpers
# =============================================================================


class ApiAssertions:
    """Helper class for API response assertions."""

    @staticmethod
    def assert_success(response: Any, expected_status: int = 200) -> dict[str, Any]:
        """
        Assert API response is successful.

        Returns:
            Response JSON data
        """
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        data = response.json()
        assert data.get("success") is True, f"Response not successful: {data}"
        return data

    @staticmethod
    def assert_error(
        response: Any,
        expected_status: int,
        expected_code: str | None = None,
    ) -> dict[str, Any]:
        """
        Assert API response is an error.

        Returns:
            Response JSON data
        """
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        data = response.json()
        assert data.get("success") is False, f"Response should be error: {data}"
        assert data.get("error") is not None, f"Missing error details: {data}"

        if expected_code:
            actual_code = data["error"].get("code")
            assert actual_code == expected_code, (
                f"Expected error code {expected_code}, got {actual_code}"
            )

        return data

    @staticmethod
    def assert_validation_error(
        response: Any,
        field: str | None = None,
    ) -> dict[str, Any]:
        """Assert API response is a request validation error (422)."""
        data = ApiAssertions.assert_error(response, 422, "VAL_REQUEST_INVALID")

        if field:
            errors = data["error"].get("details", {}).get("validation_errors", [])
            fields = [e.get("field", "") for e in errors]
            assert any(field in f for f in fields), (
                f"Expected validation error for field '{field}', "
                f"got errors for: {fields}"
            )

        return data


@pytest.fixture
def api() -> ApiAssertions:
    """Provide API assertion helpers."""
    return ApiAssertions()
