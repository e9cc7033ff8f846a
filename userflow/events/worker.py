"""
Async Worker Application.

FastStream application hosting the async user creation consumer. All of the
worker's dependencies are built here at startup and handed to the consumer;
missing configuration stops the process before it connects.

This is a factory function, FastStream CLI must be invoked with `--factory`:
    faststream run --factory userflow.events.worker:create_worker_app

or through the project CLI:
    python cli.py --service worker
"""

from faststream import FastStream

from userflow.core.config import (
    get_app_config,
    get_create_user_subject,
    get_settings,
    get_user_grpc_endpoint,
)
from userflow.core.logging import bind_source, get_logger, setup_logging
from userflow.core.resilience import create_circuit_breaker
from userflow.events.broker import create_event_broker, create_work_queue
from userflow.events.consumers.users import (
    BREAKER_EXCLUDED_ERRORS,
    AsyncUserCreator,
    register_async_user_creator,
)
from userflow.events.dlq import DeadLetterPublisher
from userflow.rpc.client import UserServiceClient
from userflow.tracing.provider import setup_tracing

logger = get_logger(__name__)

CONSUMER_NAME = "async_user_creator"


def create_worker_app() -> FastStream:
    """Create the FastStream application for the async worker process.

    Raises:
        ConfigurationError: If NATS, subject, stream or user RPC settings
            are missing
    """
    setup_logging()
    bind_source("events")

    app_config = get_app_config()
    messaging = app_config.messaging
    consumer = messaging.consumers[CONSUMER_NAME]

    shutdown_tracing = setup_tracing(
        app_config.observability.tracing,
        service_name=f"{app_config.observability.tracing.service_name}-worker",
        otlp_endpoint=get_settings().otel_exporter_otlp_endpoint,
    )

    broker = create_event_broker()
    queue = create_work_queue(broker)
    user_client = UserServiceClient(
        get_user_grpc_endpoint(),
        timeout=app_config.application.timeouts.async_rpc,
    )
    creator = AsyncUserCreator(
        subject=get_create_user_subject(),
        user_client=user_client,
        dead_letters=DeadLetterPublisher(queue, messaging.dlq.subject_prefix, messaging.dlq.enabled),
        breaker=create_circuit_breaker(
            "user-rpc",
            fail_max=consumer.circuit_breaker.fail_max,
            timeout_duration=consumer.circuit_breaker.timeout_duration,
            exclude=BREAKER_EXCLUDED_ERRORS,
        ),
        rpc_timeout=app_config.application.timeouts.async_rpc,
    )
    register_async_user_creator(
        queue,
        creator,
        durable_name=consumer.durable,
        max_pending=consumer.max_pending,
        ack_wait_seconds=consumer.ack_wait_seconds,
    )

    app = FastStream(broker)

    @app.after_shutdown
    async def _close() -> None:
        await queue.flush()
        await user_client.close()
        shutdown_tracing()
        logger.info("Async worker stopped")

    logger.info(
        "Async worker application created",
        extra={"subject": creator.subject, "durable": consumer.durable},
    )
    return app
