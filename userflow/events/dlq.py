"""
Dead-Letter Publishing.

Messages that can never succeed (undecodable payloads, requests the user
service rejects as invalid) are copied to `<prefix>.<original subject>` with
the failure reason in headers, then terminated on the work queue. The
original payload bytes and causal context headers are preserved.
"""

from userflow.core.exceptions import MessageBusError
from userflow.core.logging import get_logger
from userflow.events.queue import WorkQueue
from userflow.tracing.carrier import MessageCarrier

logger = get_logger(__name__)

REASON_HEADER = "x-dlq-reason"
ORIGINAL_SUBJECT_HEADER = "x-dlq-original-subject"


class DeadLetterPublisher:
    """Routes permanently failed messages to their dead-letter subject."""

    def __init__(self, queue: WorkQueue, subject_prefix: str, enabled: bool = True) -> None:
        self._queue = queue
        self.subject_prefix = subject_prefix
        self.enabled = enabled

    def subject_for(self, subject: str) -> str:
        return f"{self.subject_prefix}.{subject}"

    async def send(self, subject: str, payload: bytes, carrier: MessageCarrier, reason: str) -> bool:
        """
        Dead-letter a message.

        Returns:
            True when the message may be terminated: it was stored on the
            dead-letter subject, or dead-lettering is disabled and the
            message is dropped. False when the copy could not be stored and
            the message must stay on the work queue.
        """
        if not self.enabled:
            logger.error(
                "Dropping message, dead-lettering disabled",
                extra={"original_subject": subject, "reason": reason},
            )
            return True

        dlq_subject = self.subject_for(subject)
        headers = MessageCarrier.from_headers(carrier.to_headers())
        headers.set(REASON_HEADER, reason)
        headers.set(ORIGINAL_SUBJECT_HEADER, subject)
        try:
            await self._queue.publish(dlq_subject, payload, headers)
        except MessageBusError as exc:
            logger.error(
                "Failed to dead-letter message",
                extra={"dlq_subject": dlq_subject, "reason": reason, "dlq_error": str(exc)},
            )
            return False

        logger.warning(
            "Message dead-lettered",
            extra={"dlq_subject": dlq_subject, "reason": reason},
        )
        return True
