"""
Integration Tests for the Async User Creation Pipeline.

Gateway-side publish through the work queue, delivery to the consumer and
dead-lettering, run on FastStream's in-memory TestNatsBroker. The user
service is the real RPC server.
"""

import json
from typing import Any
from unittest.mock import AsyncMock

import pytest
from faststream.nats import JStream, NatsBroker, TestNatsBroker
from faststream.nats.annotations import NatsMessage

from userflow.core.resilience import create_circuit_breaker
from userflow.events.consumers.users import (
    BREAKER_EXCLUDED_ERRORS,
    AsyncUserCreator,
    register_async_user_creator,
)
from userflow.events.dlq import REASON_HEADER, DeadLetterPublisher
from userflow.events.middleware import EventObservabilityMiddleware
from userflow.events.queue import WorkQueue
from userflow.tracing.carrier import MessageCarrier
from userflow.tracing.propagation import decode, inject

SUBJECT = "users.create"
DLQ_SUBJECT = f"dlq.{SUBJECT}"


@pytest.fixture
def broker() -> NatsBroker:
    return NatsBroker("nats://localhost:4222", middlewares=[EventObservabilityMiddleware])


@pytest.fixture
def queue(broker) -> WorkQueue:
    return WorkQueue(broker, JStream("USERS", subjects=[SUBJECT, DLQ_SUBJECT]), max_in_flight=8, publish_timeout=5)


@pytest.fixture
def dead_lettered(broker, queue) -> AsyncMock:
    """Records every message arriving on the dead-letter subject."""
    seen = AsyncMock()

    @broker.subscriber(DLQ_SUBJECT, stream=queue.stream)
    async def on_dead_letter(body: Any, message: NatsMessage) -> None:
        await seen(message.body, message.headers)

    return seen


@pytest.fixture
def creator(queue, user_rpc_client) -> AsyncUserCreator:
    creator = AsyncUserCreator(
        subject=SUBJECT,
        user_client=user_rpc_client,
        dead_letters=DeadLetterPublisher(queue, "dlq"),
        breaker=create_circuit_breaker("user-rpc", exclude=BREAKER_EXCLUDED_ERRORS),
        rpc_timeout=30,
    )
    register_async_user_creator(
        queue, creator, durable_name="asyncUserCreator", max_pending=256, ack_wait_seconds=60,
    )
    return creator


class TestPipeline:
    @pytest.mark.asyncio
    async def test_published_user_is_created(self, broker, queue, creator, user_rpc_client, producer_ctx):
        payload = json.dumps({"id": "u-async", "name": "Alice", "description": "eng"}).encode()

        async with TestNatsBroker(broker):
            await queue.publish(SUBJECT, payload, inject(producer_ctx, MessageCarrier()))

        user = await user_rpc_client.get_user("u-async")
        assert user.name == "Alice"
        assert user.description == "eng"

    @pytest.mark.asyncio
    async def test_redelivered_item_is_not_created_twice(
        self, broker, queue, creator, dead_lettered, user_rpc_client,
    ):
        payload = json.dumps({"id": "u-once", "name": "Alice"}).encode()

        async with TestNatsBroker(broker):
            await queue.publish(SUBJECT, payload, MessageCarrier())
            await queue.publish(SUBJECT, payload, MessageCarrier())

        dead_lettered.assert_not_awaited()
        assert (await user_rpc_client.get_user("u-once")).name == "Alice"

    @pytest.mark.asyncio
    async def test_undecodable_item_is_dead_lettered(
        self, broker, queue, creator, dead_lettered, producer_ctx,
    ):
        carrier = inject(producer_ctx, MessageCarrier())

        async with TestNatsBroker(broker):
            await queue.publish(SUBJECT, b"{not json", carrier)

        dead_lettered.assert_awaited_once()
        body, headers = dead_lettered.call_args[0]
        assert body == b"{not json"
        assert headers[REASON_HEADER] == "undecodable payload"
        assert decode(MessageCarrier.from_headers(headers)).trace_id == producer_ctx.trace_id

    @pytest.mark.asyncio
    async def test_rejected_request_is_dead_lettered(self, broker, queue, creator, dead_lettered):
        payload = json.dumps({"name": ""}).encode()

        async with TestNatsBroker(broker):
            await queue.publish(SUBJECT, payload, MessageCarrier())

        dead_lettered.assert_awaited_once()
        _, headers = dead_lettered.call_args[0]
        assert headers[REASON_HEADER].startswith("rejected:")
