"""
Unit Test Fixtures.

Fixtures for unit tests - all external dependencies are mocked.
Unit tests should be fast and isolated, never touching a broker or network.
"""

from unittest.mock import AsyncMock, MagicMock, create_autospec

import pytest

from userflow.rpc.client import UserServiceClient
from userflow.schemas.user import UserMessage


# =============================================================================
# RPC Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_user_client() -> MagicMock:
    """
    Mock UserServiceClient, specced on the real class.

    Unspecced mocks answer every attribute lookup, which aiobreaker reads as
    `_ignore_on_call` and then bypasses the breaker.

    Usage:
        async def test_consumer(mock_user_client):
            mock_user_client.create_user.side_effect = RpcTransportError()
    """
    client = create_autospec(UserServiceClient, instance=True)
    client.create_user.side_effect = lambda user, ctx=None, timeout=None: user.model_copy(update={"id": "user-1"})
    client.get_user.return_value = UserMessage(id="user-1", name="Alice")
    client.update_user.side_effect = lambda user, ctx=None, timeout=None: user
    client.delete_user.return_value = UserMessage(id="user-1", name="Alice")
    return client


# =============================================================================
# Broker Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_broker() -> MagicMock:
    """
    Mock FastStream NatsBroker.

    publish() resolves immediately; replace its side_effect to simulate a
    slow or failing broker.
    """
    broker = MagicMock()
    broker.publish = AsyncMock(return_value=None)
    broker.close = AsyncMock()
    broker.ping = AsyncMock(return_value=True)
    return broker


# =============================================================================
# Logging Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_logger() -> MagicMock:
    """
    Mock logger for testing logging calls.

    Usage:
        def test_logging(mock_logger):
            with patch("module.logger", mock_logger):
                ...
                mock_logger.info.assert_called_once()
    """
    logger = MagicMock()
    logger.debug = MagicMock()
    logger.info = MagicMock()
    logger.warning = MagicMock()
    logger.error = MagicMock()
    logger.exception = MagicMock()
    return logger
