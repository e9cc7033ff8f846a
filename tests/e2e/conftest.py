"""
End-to-End Test Fixtures.

Fixtures for E2E tests against a live NATS JetStream server. Every test in
this directory is skipped unless NATS_URL is set:

    docker run -p 4222:4222 nats:latest -js
    NATS_URL=nats://localhost:4222 pytest tests/e2e
"""

import os
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass

import pytest
from faststream.nats import JStream, NatsBroker

from userflow.events.broker import create_event_broker
from userflow.events.queue import WorkQueue


def pytest_collection_modifyitems(config, items):
    if os.environ.get("NATS_URL"):
        return
    skip = pytest.mark.skip(reason="NATS_URL not set")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip)


@dataclass(frozen=True)
class Workspace:
    """Stream and subject names unique to one test."""

    stream: JStream
    subject: str
    durable: str


@pytest.fixture
def nats_url() -> str:
    return os.environ["NATS_URL"]


@pytest.fixture
async def workspace(nats_url: str) -> AsyncGenerator[Workspace, None]:
    """
    A fresh JetStream stream, deleted again when the test ends.

    Usage:
        async def test_publish(workspace, make_queue):
            queue = make_queue()
            await queue.publish(workspace.subject, b"{}", MessageCarrier())
    """
    suffix = uuid.uuid4().hex[:12]
    subject = f"e2e.{suffix}.users.create"
    ws = Workspace(
        stream=JStream(f"E2E_{suffix}", subjects=[subject]),
        subject=subject,
        durable=f"e2eUserCreator{suffix}",
    )

    yield ws

    admin = NatsBroker(nats_url)
    await admin.connect()
    try:
        await admin.stream.delete_stream(ws.stream.name)
    finally:
        await admin.close()


@pytest.fixture
def make_queue(nats_url: str, workspace: Workspace):
    """Factory for WorkQueues on separate broker connections."""

    def factory() -> WorkQueue:
        broker: NatsBroker = create_event_broker(nats_url)
        return WorkQueue(broker, workspace.stream, max_in_flight=16, publish_timeout=5)

    return factory
