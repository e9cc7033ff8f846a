"""
Event Observability Middleware.

Applied to every message consumed from the work queue. Binds subject,
broker message id and JetStream delivery attempt to structlog for the
handler's duration and logs processing time. Trace fields are bound by the
consumer's span scope once the causal context has been extracted.
"""

import time

import structlog
from faststream import BaseMiddleware

from userflow.core.logging import get_logger

logger = get_logger(__name__)

BOUND_FIELDS = ("subject", "message_id", "delivery_attempt")


def _delivery_attempt(raw) -> int | None:
    """JetStream delivery count, or None for core NATS and in-memory messages."""
    if not str(getattr(raw, "reply", "") or "").startswith("$JS.ACK."):
        return None
    try:
        return raw.metadata.num_delivered
    except (AttributeError, ValueError):
        return None


class EventObservabilityMiddleware(BaseMiddleware):
    """Per-message log context and timing for event consumers."""

    async def on_consume(self, msg):
        raw = getattr(msg, "raw_message", None)
        attempt = _delivery_attempt(raw)
        structlog.contextvars.bind_contextvars(
            subject=getattr(raw, "subject", "unknown"),
            message_id=getattr(msg, "message_id", None) or "unknown",
            delivery_attempt=attempt,
            source="events",
        )
        if attempt is not None and attempt > 1:
            logger.warning("Message redelivered", extra={"delivery_attempt": attempt})
        self._started = time.monotonic()
        return await super().on_consume(msg)

    async def after_consume(self, err):
        duration_ms = round((time.monotonic() - self._started) * 1000, 1)
        if err:
            logger.error(
                "Message processing failed",
                extra={"duration_ms": duration_ms, "error": str(err)},
            )
        else:
            logger.info("Message processed", extra={"duration_ms": duration_ms})

        structlog.contextvars.unbind_contextvars(*BOUND_FIELDS)
        return await super().after_consume(err)
