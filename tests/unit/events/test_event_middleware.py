"""Unit tests for the event consumer log context middleware."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
import structlog

from userflow.events.middleware import EventObservabilityMiddleware, _delivery_attempt

ACK_REPLY = "$JS.ACK.USERS.asyncUserCreator.3.10.10.1700000000000000000.0"


def _message(num_delivered: int, reply: str = ACK_REPLY) -> SimpleNamespace:
    raw = SimpleNamespace(
        subject="users.create",
        reply=reply,
        metadata=SimpleNamespace(num_delivered=num_delivered),
    )
    return SimpleNamespace(raw_message=raw, message_id="m-1")


@pytest.fixture(autouse=True)
def clean_contextvars():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


class TestDeliveryAttempt:
    def test_reads_jetstream_metadata(self):
        assert _delivery_attempt(_message(3).raw_message) == 3

    def test_core_nats_message(self):
        assert _delivery_attempt(_message(3, reply="").raw_message) is None

    def test_missing_raw_message(self):
        assert _delivery_attempt(None) is None


class TestEventObservabilityMiddleware:
    @pytest.mark.asyncio
    async def test_binds_message_fields(self):
        middleware = EventObservabilityMiddleware()

        with patch("userflow.events.middleware.logger"):
            await middleware.on_consume(_message(1))

        bound = structlog.contextvars.get_contextvars()
        assert bound["subject"] == "users.create"
        assert bound["message_id"] == "m-1"
        assert bound["delivery_attempt"] == 1
        assert bound["source"] == "events"

    @pytest.mark.asyncio
    async def test_redelivery_is_logged(self):
        middleware = EventObservabilityMiddleware()

        with patch("userflow.events.middleware.logger") as mock_logger:
            await middleware.on_consume(_message(2))

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args[1]["extra"]["delivery_attempt"] == 2

    @pytest.mark.asyncio
    async def test_after_consume_unbinds_message_fields(self):
        middleware = EventObservabilityMiddleware()

        with patch("userflow.events.middleware.logger") as mock_logger:
            await middleware.on_consume(_message(1))
            await middleware.after_consume(None)

        bound = structlog.contextvars.get_contextvars()
        assert "subject" not in bound
        assert "message_id" not in bound
        assert bound["source"] == "events"
        mock_logger.info.assert_called_once()

    @pytest.mark.asyncio
    async def test_failure_logged_at_error(self):
        middleware = EventObservabilityMiddleware()

        with patch("userflow.events.middleware.logger") as mock_logger:
            await middleware.on_consume(_message(1))
            with pytest.raises(RuntimeError):
                await middleware.after_consume(RuntimeError("boom"))

        mock_logger.error.assert_called_once()
