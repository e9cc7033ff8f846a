"""
Durable Work Queue.

At-least-once publish/subscribe over a NATS JetStream stream, wrapping the
FastStream NatsBroker.

Publishing:
    publish()        - waits for the broker's acknowledgment
    publish_async()  - returns once the publish is scheduled; the ack is
                       awaited in the background
    Both share one bound of `max_in_flight` unacknowledged publishes. When
    no slot frees up within `publish_timeout`, PublishBackpressureError is
    raised instead of buffering. There is no local retry queue.

Subscribing:
    subscribe() registers a durable push consumer (subject, durable name,
    max-pending, ack wait) whose deliver group is the durable name.
    Consumers sharing a durable name join that group and share one cursor,
    so redelivery after a crash resumes from the last acknowledged message.
    FastStream warns that a durable push consumer does not scale
    horizontally; the deliver group is what spreads deliveries across
    worker processes.

    The handler gets the raw payload and the MessageCarrier and returns an
    Outcome that settles the message:

        ACK    - done, never redelivered
        NACK   - redeliver (transient failure)
        REJECT - terminate, never redelivered (dead-lettered upstream)

    A message the handler never settles is redelivered once the ack wait
    elapses. Payload bytes are never inspected here.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import nats.errors
from faststream.nats import JStream, NatsBroker
from faststream.nats.annotations import NatsMessage
from nats.js.api import ConsumerConfig
from nats.js.errors import BadRequestError

from userflow.core.exceptions import MessageBusError, PublishBackpressureError
from userflow.core.logging import get_logger
from userflow.tracing.carrier import MessageCarrier

logger = get_logger(__name__)


class Outcome(str, Enum):
    """How a delivered message is settled."""

    ACK = "ack"
    NACK = "nack"
    REJECT = "reject"


MessageHandler = Callable[[bytes, MessageCarrier], Awaitable[Outcome]]


@dataclass(frozen=True)
class DurableConsumerRegistration:
    """Named cursor into the work queue, created once at consumer startup."""

    subject: str
    durable_name: str
    max_pending: int
    ack_wait_seconds: float


async def settle(message: Any, outcome: Outcome) -> None:
    """Apply an Outcome to a delivered FastStream message."""
    if outcome is Outcome.ACK:
        await message.ack()
    elif outcome is Outcome.NACK:
        await message.nack()
    else:
        await message.reject()


class WorkQueue:
    """Publish/subscribe client for one JetStream stream."""

    def __init__(
        self,
        broker: NatsBroker,
        stream: JStream,
        max_in_flight: int,
        publish_timeout: float,
    ) -> None:
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        self.broker = broker
        self.stream = stream
        self.max_in_flight = max_in_flight
        self.publish_timeout = publish_timeout
        self._slots = asyncio.Semaphore(max_in_flight)
        self._in_flight = 0
        self._pending: set[asyncio.Task[None]] = set()
        self._subscribers: list[Any] = []

    @property
    def in_flight(self) -> int:
        """Publishes sent but not yet acknowledged by the broker."""
        return self._in_flight

    async def _acquire_slot(self, subject: str) -> None:
        try:
            async with asyncio.timeout(self.publish_timeout):
                await self._slots.acquire()
        except TimeoutError as exc:
            logger.warning(
                "Publish rejected, too many unacknowledged messages",
                extra={"subject": subject, "max_in_flight": self.max_in_flight},
            )
            raise PublishBackpressureError(
                f"{self.max_in_flight} publishes awaiting acknowledgment"
            ) from exc
        self._in_flight += 1

    def _release_slot(self) -> None:
        self._in_flight -= 1
        self._slots.release()

    async def _send(self, subject: str, payload: bytes, carrier: MessageCarrier) -> None:
        try:
            async with asyncio.timeout(self.publish_timeout):
                await self.broker.publish(
                    payload,
                    subject,
                    headers=carrier.to_headers(),
                    stream=self.stream.name,
                )
        except (nats.errors.Error, TimeoutError, ConnectionError, OSError) as exc:
            logger.error(
                "Publish failed",
                extra={"subject": subject, "error": str(exc), "error_type": type(exc).__name__},
            )
            raise MessageBusError(f"Could not publish to {subject}: {exc}") from exc
        logger.debug("Message published", extra={"subject": subject, "payload_bytes": len(payload)})

    async def publish(self, subject: str, payload: bytes, carrier: MessageCarrier) -> None:
        """
        Publish and wait for the broker's acknowledgment.

        Raises:
            PublishBackpressureError: If no in-flight slot frees up in time
            MessageBusError: If the broker cannot be reached or does not ack
        """
        await self._acquire_slot(subject)
        try:
            await self._send(subject, payload, carrier)
        finally:
            self._release_slot()

    async def publish_async(
        self, subject: str, payload: bytes, carrier: MessageCarrier,
    ) -> asyncio.Task[None]:
        """
        Schedule a publish and return without waiting for its ack.

        The returned task completes when the broker acknowledges, or fails
        with MessageBusError. The in-flight slot is held until then.

        Raises:
            PublishBackpressureError: If no in-flight slot frees up in time
        """
        await self._acquire_slot(subject)
        task = asyncio.create_task(self._send(subject, payload, carrier))
        self._pending.add(task)

        def _done(finished: asyncio.Task[None]) -> None:
            self._pending.discard(finished)
            self._release_slot()
            if not finished.cancelled() and finished.exception() is not None:
                logger.error(
                    "Async publish was not acknowledged",
                    extra={"subject": subject, "error": str(finished.exception())},
                )

        task.add_done_callback(_done)
        return task

    async def flush(self) -> None:
        """Wait for every scheduled async publish to settle."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def subscribe(self, registration: DurableConsumerRegistration, handler: MessageHandler) -> Any:
        """
        Register a durable consumer. Deliveries start with the broker.

        Returns:
            The FastStream subscriber, accepted by unsubscribe()
        """
        subscriber = self.broker.subscriber(
            registration.subject,
            queue=registration.durable_name,
            stream=self.stream,
            durable=registration.durable_name,
            config=ConsumerConfig(
                ack_wait=registration.ack_wait_seconds,
                max_ack_pending=registration.max_pending,
            ),
            no_ack=True,
        )

        @subscriber
        async def deliver(body: Any, message: NatsMessage) -> None:
            carrier = MessageCarrier.from_headers(message.headers)
            try:
                outcome = await handler(message.body, carrier)
            except Exception as exc:
                logger.exception(
                    "Message handler raised, leaving message for redelivery",
                    extra={"subject": registration.subject, "error_type": type(exc).__name__},
                )
                outcome = Outcome.NACK
            await settle(message, outcome)

        self._subscribers.append(subscriber)
        logger.info(
            "Durable consumer registered",
            extra={
                "subject": registration.subject,
                "durable": registration.durable_name,
                "max_pending": registration.max_pending,
            },
        )
        return subscriber

    async def unsubscribe(self, subscriber: Any) -> None:
        """Stop new deliveries to subscriber; in-flight handlers finish."""
        await subscriber.close()
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    async def ensure_stream(self) -> None:
        """
        Create the stream, or update its subjects when it already exists.

        Publish-only processes call this after connecting; consumers get the
        stream declared by their subscriber.
        """
        jetstream = self.broker.stream
        try:
            await jetstream.add_stream(name=self.stream.name, subjects=self.stream.subjects)
        except BadRequestError:
            await jetstream.update_stream(name=self.stream.name, subjects=self.stream.subjects)
        logger.info(
            "Stream ready",
            extra={"stream": self.stream.name, "subjects": self.stream.subjects},
        )

    async def close(self) -> None:
        """Wait for pending publishes, stop subscribers, close the connection."""
        await self.flush()
        for subscriber in list(self._subscribers):
            await self.unsubscribe(subscriber)
        await self.broker.close()
