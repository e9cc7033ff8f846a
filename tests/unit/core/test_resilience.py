"""Unit tests for userflow.core.resilience."""

from unittest.mock import MagicMock, create_autospec, patch

import aiobreaker
import pytest

from userflow.core.exceptions import ConflictError, RpcTransportError
from userflow.core.resilience import (
    ResilienceLogger,
    create_circuit_breaker,
    log_retry,
)
from userflow.rpc.client import UserServiceClient
from userflow.schemas.user import UserMessage


class TestResilienceLogger:
    def test_state_change_open(self):
        """Opening the circuit should log at error level."""
        rl = ResilienceLogger("user-rpc")
        mock_cb = MagicMock()
        mock_cb.fail_counter = 5

        with patch("userflow.core.resilience.logger") as mock_logger:
            rl.state_change(mock_cb, "closed", "open")
            mock_logger.error.assert_called_once()
            assert "circuit_breaker_opened" in str(mock_logger.error.call_args)

    def test_state_change_closed(self):
        """Closing the circuit should log at info level."""
        rl = ResilienceLogger("user-rpc")
        mock_cb = MagicMock()
        mock_cb.fail_counter = 0

        with patch("userflow.core.resilience.logger") as mock_logger:
            rl.state_change(mock_cb, "open", "closed")
            mock_logger.info.assert_called_once()
            assert "circuit_breaker_closed" in str(mock_logger.info.call_args)

    def test_state_change_half_open(self):
        rl = ResilienceLogger("user-rpc")
        mock_cb = MagicMock()
        mock_cb.fail_counter = 3

        with patch("userflow.core.resilience.logger") as mock_logger:
            rl.state_change(mock_cb, "open", "half-open")
            assert "circuit_breaker_half_open" in str(mock_logger.info.call_args)

    def test_failure(self):
        """Recording a failure should log at warning level."""
        rl = ResilienceLogger("company-http")
        mock_cb = MagicMock()
        mock_cb.fail_counter = 2

        with patch("userflow.core.resilience.logger") as mock_logger:
            rl.failure(mock_cb, ConnectionError("timeout"))
            mock_logger.warning.assert_called_once()
            assert "circuit_breaker_failure" in str(mock_logger.warning.call_args)


class TestLogRetry:
    def test_emits_structured_event(self):
        mock_state = MagicMock()
        mock_state.attempt_number = 2
        mock_state.fn.__name__ = "_get"
        mock_state.outcome_timestamp = 1000.5
        mock_state.start_time = 1000.0
        mock_state.outcome.failed = True
        mock_state.outcome.exception.return_value = ConnectionError("fail")

        with patch("userflow.core.resilience.logger") as mock_logger:
            log_retry(mock_state)
            call_args = mock_logger.warning.call_args
            assert "_get" in call_args[0][0]
            assert call_args[1]["extra"]["resilience_event"] == "retry_attempt"
            assert call_args[1]["extra"]["duration_ms"] == 500


class TestCreateCircuitBreaker:
    def test_configuration(self):
        breaker = create_circuit_breaker("user-rpc", fail_max=3, timeout_duration=10)
        assert breaker.fail_max == 3
        assert breaker.timeout_duration.total_seconds() == 10
        assert any(isinstance(listener, ResilienceLogger) for listener in breaker.listeners)

    @pytest.mark.asyncio
    async def test_opens_after_failures(self):
        breaker = create_circuit_breaker("user-rpc", fail_max=2, timeout_duration=60)

        async def failing():
            raise RpcTransportError("down")

        for _ in range(2):
            with pytest.raises((RpcTransportError, aiobreaker.CircuitBreakerError)):
                await breaker.call_async(failing)

        with pytest.raises(aiobreaker.CircuitBreakerError):
            await breaker.call_async(failing)

    @pytest.mark.asyncio
    async def test_excluded_errors_do_not_count(self):
        breaker = create_circuit_breaker(
            "user-rpc", fail_max=1, timeout_duration=60, exclude=[ConflictError],
        )

        async def conflict():
            raise ConflictError("exists")

        for _ in range(3):
            with pytest.raises(ConflictError):
                await breaker.call_async(conflict)
        assert breaker.fail_counter == 0

    @pytest.mark.asyncio
    async def test_opening_is_logged_from_breaker_states(self):
        breaker = create_circuit_breaker("user-rpc", fail_max=1, timeout_duration=60)

        async def failing():
            raise RpcTransportError("down")

        with patch("userflow.core.resilience.logger") as mock_logger:
            with pytest.raises((RpcTransportError, aiobreaker.CircuitBreakerError)):
                await breaker.call_async(failing)

        assert mock_logger.error.call_args[1]["extra"]["resilience_event"] == "circuit_breaker_opened"

    @pytest.mark.asyncio
    async def test_specced_client_method_goes_through_breaker(self):
        client = create_autospec(UserServiceClient, instance=True)
        client.create_user.side_effect = RpcTransportError("down")
        breaker = create_circuit_breaker("user-rpc", fail_max=2, timeout_duration=60)
        user = UserMessage(name="Alice")

        for _ in range(2):
            with pytest.raises((RpcTransportError, aiobreaker.CircuitBreakerError)):
                await breaker.call_async(client.create_user, user)
        with pytest.raises(aiobreaker.CircuitBreakerError):
            await breaker.call_async(client.create_user, user)

        assert client.create_user.await_count == 2
