"""
Resilience Infrastructure.

Circuit breaker listener, retry callback, and breaker factory used around
calls to other services.

    async worker -> user RPC     : circuit breaker (aiobreaker) + RPC deadline
    gateway      -> company HTTP : retry (tenacity, idempotent GETs only)

Usage:
    from userflow.core.resilience import create_circuit_breaker, log_retry

    breaker = create_circuit_breaker("user-rpc", exclude=[ConflictError])
    user = await breaker.call_async(client.create_user, message, ctx)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, max=1),
        retry=retry_if_exception_type(httpx.TransportError),
        before_sleep=log_retry,
        reraise=True,
    )
    async def fetch():
        ...
"""

from collections.abc import Iterable
from datetime import timedelta
from enum import Enum
from typing import Any

import aiobreaker

from userflow.core.logging import get_logger

logger = get_logger(__name__)


def _state_name(state: Any) -> str:
    """'open', 'closed' or 'half_open' for an aiobreaker state or a plain name."""
    enum = getattr(state, "state", None)
    if isinstance(enum, Enum):
        return enum.name.lower()
    return str(state).lower().replace("-", "_")


class ResilienceLogger(aiobreaker.CircuitBreakerListener):
    """Logs breaker transitions and counted failures for one dependency.

    Every record carries `resilience_event` and `dependency`:

        jq 'select(.resilience_event != null)' logs/system.jsonl
    """

    def __init__(self, dependency: str) -> None:
        self.dependency = dependency

    def state_change(self, cb: aiobreaker.CircuitBreaker, old_state: Any, new_state: Any) -> None:
        old, new = _state_name(old_state), _state_name(new_state)
        log = logger.error if new == "open" else logger.info
        log(
            f"Circuit breaker {self.dependency}: {old} -> {new}",
            extra={
                "resilience_event": "circuit_breaker_opened" if new == "open" else f"circuit_breaker_{new}",
                "dependency": self.dependency,
                "failure_count": cb.fail_counter,
            },
        )

    def failure(self, cb: aiobreaker.CircuitBreaker, exception: Exception) -> None:
        logger.warning(
            f"Circuit breaker {self.dependency}: failure recorded",
            extra={
                "resilience_event": "circuit_breaker_failure",
                "dependency": self.dependency,
                "failure_count": cb.fail_counter,
                "error": str(exception),
            },
        )


def log_retry(retry_state: Any) -> None:
    """Tenacity before_sleep callback; retry_state is a tenacity.RetryCallState."""
    name = getattr(retry_state.fn, "__name__", "unknown")
    outcome = retry_state.outcome
    elapsed = None
    if retry_state.outcome_timestamp and retry_state.start_time:
        elapsed = round((retry_state.outcome_timestamp - retry_state.start_time) * 1000)

    logger.warning(
        f"Retrying {name} (attempt {retry_state.attempt_number})",
        extra={
            "resilience_event": "retry_attempt",
            "dependency": name,
            "attempt": retry_state.attempt_number,
            "duration_ms": elapsed,
            "error": str(outcome.exception()) if outcome is not None and outcome.failed else None,
        },
    )


def create_circuit_breaker(
    dependency: str,
    fail_max: int = 5,
    timeout_duration: int = 30,
    exclude: Iterable[type[Exception]] = (),
) -> aiobreaker.CircuitBreaker:
    """Create a logged circuit breaker.

    Args:
        dependency: Name of the downstream dependency (for logging)
        fail_max: Consecutive counted failures before opening
        timeout_duration: Seconds open before a half-open trial call
        exclude: Exception types that are answers, not failures, and
            never count toward opening the breaker
    """
    return aiobreaker.CircuitBreaker(
        fail_max=fail_max,
        timeout_duration=timedelta(seconds=timeout_duration),
        exclude=list(exclude),
        listeners=[ResilienceLogger(dependency)],
    )
