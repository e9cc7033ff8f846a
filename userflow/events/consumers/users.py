"""
Async User Creation Consumer.

Consumes user-creation work items published by the gateway and creates each
user through the user RPC service. One message moves through:

    received -> context extracted -> payload decoded -> RPC dispatched
             -> ACK | NACK | dead-lettered + REJECT

    undecodable payload        dead-letter, then REJECT (NACK if the
                               dead-letter copy cannot be stored)
    user already exists        ACK; a redelivery of an item that was
                               already created is done, not failed
    user service rejects       dead-letter, then REJECT
    RPC timeout / unreachable  NACK, redelivered by the broker
    circuit breaker open       NACK, redelivered by the broker
    created                    ACK

The RPC call carries a child of the producer's causal context, so the
gateway request, this delivery and the user service call share one trace.
Nothing here terminates the process.
"""

import aiobreaker
from opentelemetry.trace import SpanKind
from pydantic import ValidationError as PydanticValidationError

from userflow.core.exceptions import (
    ApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from userflow.core.logging import get_logger
from userflow.events.dlq import DeadLetterPublisher
from userflow.events.queue import DurableConsumerRegistration, Outcome, WorkQueue
from userflow.rpc.client import UserServiceClient
from userflow.schemas.user import UserMessage
from userflow.tracing.carrier import MessageCarrier
from userflow.tracing.context import CausalContext
from userflow.tracing.propagation import extract
from userflow.tracing.scope import span_scope

logger = get_logger(__name__)

# Outcomes reported by the user service, not failures of it.
BREAKER_EXCLUDED_ERRORS = (ConflictError, ValidationError, NotFoundError)


class AsyncUserCreator:
    """Creates users from work items, settling each message with an Outcome."""

    def __init__(
        self,
        subject: str,
        user_client: UserServiceClient,
        dead_letters: DeadLetterPublisher,
        breaker: aiobreaker.CircuitBreaker,
        rpc_timeout: float,
    ) -> None:
        self.subject = subject
        self._user_client = user_client
        self._dead_letters = dead_letters
        self._breaker = breaker
        self._rpc_timeout = rpc_timeout

    async def handle(self, payload: bytes, carrier: MessageCarrier) -> Outcome:
        ctx = extract(carrier)
        with span_scope("users.create.consume", ctx, kind=SpanKind.CONSUMER) as ctx:
            logger.info("User creation request received", extra={"payload_bytes": len(payload)})

            try:
                user = UserMessage.model_validate_json(payload)
            except PydanticValidationError as exc:
                logger.error(
                    "Undecodable user creation request",
                    extra={"error_count": exc.error_count()},
                )
                return await self._dead_letter(payload, carrier, "undecodable payload")

            try:
                created = await self._create(user, ctx)
            except ConflictError as exc:
                logger.warning(
                    "User already exists, acknowledging redelivery",
                    extra={"user_id": user.id, "message": exc.message},
                )
                return Outcome.ACK
            except ValidationError as exc:
                logger.error(
                    "User service rejected creation request",
                    extra={"message": exc.message},
                )
                return await self._dead_letter(payload, carrier, f"rejected: {exc.message}")
            except aiobreaker.CircuitBreakerError as exc:
                logger.warning(
                    "User service circuit open, leaving message for redelivery",
                    extra={"error": str(exc)},
                )
                return Outcome.NACK
            except ExternalServiceError as exc:
                logger.error(
                    "User service call failed, leaving message for redelivery",
                    extra={"code": exc.code, "message": exc.message},
                )
                return Outcome.NACK
            except ApplicationError as exc:
                logger.error(
                    "Unexpected user service answer, leaving message for redelivery",
                    extra={"code": exc.code, "message": exc.message},
                )
                return Outcome.NACK

            logger.info("User created from work item", extra={"user_id": created.id})
            return Outcome.ACK

    async def _create(self, user: UserMessage, ctx: CausalContext) -> UserMessage:
        return await self._breaker.call_async(
            self._user_client.create_user,
            user,
            ctx,
            self._rpc_timeout,
        )

    async def _dead_letter(self, payload: bytes, carrier: MessageCarrier, reason: str) -> Outcome:
        if await self._dead_letters.send(self.subject, payload, carrier, reason):
            return Outcome.REJECT
        return Outcome.NACK


def register_async_user_creator(
    queue: WorkQueue,
    creator: AsyncUserCreator,
    durable_name: str,
    max_pending: int,
    ack_wait_seconds: float,
):
    """Subscribe creator to its subject with a durable cursor."""
    registration = DurableConsumerRegistration(
        subject=creator.subject,
        durable_name=durable_name,
        max_pending=max_pending,
        ack_wait_seconds=ack_wait_seconds,
    )
    return queue.subscribe(registration, creator.handle)
