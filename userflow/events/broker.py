"""
Event Broker.

FastStream NatsBroker setup and the users JetStream stream. Each process
builds its own broker at startup; nothing is shared at module level.

Usage:
    from userflow.events.broker import create_event_broker, create_work_queue

    broker = create_event_broker()
    queue = create_work_queue(broker)
"""

from faststream.nats import JStream, NatsBroker

from userflow.core.config import get_app_config, get_nats_url, get_users_stream
from userflow.core.logging import get_logger
from userflow.events.middleware import EventObservabilityMiddleware
from userflow.events.queue import WorkQueue

logger = get_logger(__name__)


def create_event_broker(url: str | None = None) -> NatsBroker:
    """Create a NatsBroker with the observability middleware.

    Args:
        url: NATS server URL; defaults to NATS_URL

    Raises:
        ConfigurationError: If no URL is given and NATS_URL is unset
    """
    broker = NatsBroker(url or get_nats_url(), middlewares=[EventObservabilityMiddleware])
    logger.info("Event broker created")
    return broker


def dead_letter_subject(subject: str, prefix: str | None = None) -> str:
    """Dead-letter subject for messages first published on subject."""
    prefix = prefix if prefix is not None else get_app_config().messaging.dlq.subject_prefix
    return f"{prefix}.{subject}"


def users_stream() -> JStream:
    """
    The users work stream.

    Captures the configured subjects plus their dead-letter subjects so that
    dead-lettered messages are retained for inspection.
    """
    name, subjects = get_users_stream()
    dlq = get_app_config().messaging.dlq
    all_subjects = list(subjects)
    if dlq.enabled:
        all_subjects += [dead_letter_subject(s, dlq.subject_prefix) for s in subjects]
    return JStream(name, subjects=all_subjects)


def create_work_queue(broker: NatsBroker, stream: JStream | None = None) -> WorkQueue:
    """Create a WorkQueue on broker bounded by messaging.yaml publish limits."""
    publish = get_app_config().messaging.publish
    return WorkQueue(
        broker,
        stream or users_stream(),
        max_in_flight=publish.max_in_flight,
        publish_timeout=publish.timeout_seconds,
    )
