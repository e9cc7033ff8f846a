"""
Causal Context Propagation.

Writes and reads a causal context through a MessageCarrier using the W3C
trace-context encoding:

    traceparent: 00-<32 hex trace_id>-<16 hex span_id>-<2 hex flags>
    tracestate:  vendor correlation data (optional)

Encoding and decoding are delegated to OpenTelemetry's
TraceContextTextMapPropagator. Two rules sit on top of it:

    inject  - an empty context writes nothing; never raises
    extract - any missing, malformed or non-"00" header yields a fresh root
              context; never raises. A decoded context is returned as a new
              child span of the producer's span.

Usage:
    from userflow.tracing.propagation import extract, inject

    carrier = MessageCarrier()
    inject(ctx, carrier)
    ...
    consumer_ctx = extract(carrier)
"""

from typing import Any

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.propagators.textmap import Getter, Setter
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from userflow.core.logging import get_logger
from userflow.tracing.carrier import MessageCarrier
from userflow.tracing.context import CausalContext

logger = get_logger(__name__)

TRACEPARENT_HEADER = "traceparent"
TRACESTATE_HEADER = "tracestate"
SUPPORTED_VERSION = "00"

_propagator = TraceContextTextMapPropagator()


class CarrierGetter(Getter[MessageCarrier]):
    """OpenTelemetry getter over a MessageCarrier."""

    def get(self, carrier: MessageCarrier, key: str) -> list[str] | None:
        return carrier.get(key)

    def keys(self, carrier: MessageCarrier) -> list[str]:
        return carrier.keys()


class CarrierSetter(Setter[MessageCarrier]):
    """OpenTelemetry setter over a MessageCarrier."""

    def set(self, carrier: MessageCarrier, key: str, value: str) -> None:
        carrier.set(key, value)


_getter = CarrierGetter()
_setter = CarrierSetter()


def inject(ctx: CausalContext | None, carrier: MessageCarrier) -> MessageCarrier:
    """
    Write ctx into carrier.

    Pure: no I/O. An empty or missing context leaves the carrier unchanged.

    Returns:
        The same carrier, for chaining
    """
    if ctx is None or not ctx.is_valid:
        return carrier
    otel_context = trace.set_span_in_context(
        trace.NonRecordingSpan(ctx.to_span_context()),
        Context(),
    )
    _propagator.inject(carrier, context=otel_context, setter=_setter)
    return carrier


def _has_supported_version(carrier: MessageCarrier) -> bool:
    header = carrier.get_first(TRACEPARENT_HEADER)
    if header is None:
        return False
    return header.strip().split("-", 1)[0] == SUPPORTED_VERSION


def decode(carrier: MessageCarrier) -> CausalContext | None:
    """
    Decode the producer's context exactly as written, without minting a child.

    Returns:
        The decoded context, or None when the headers are missing or malformed
    """
    if not _has_supported_version(carrier):
        return None
    otel_context = _propagator.extract(carrier, context=Context(), getter=_getter)
    span_context = trace.get_current_span(otel_context).get_span_context()
    if not span_context.is_valid:
        return None
    return CausalContext.from_span_context(span_context)


def extract(carrier: MessageCarrier | None) -> CausalContext:
    """
    Rebuild the causal context for a new unit of work from carrier.

    Returns:
        A child of the producer's context (same trace_id, parent_span_id set
        to the producer's span_id), or a fresh root context when the carrier
        holds no usable context
    """
    try:
        decoded = decode(carrier) if carrier is not None else None
    except Exception as exc:
        logger.debug("Trace context decode failed", extra={"error": str(exc)})
        decoded = None

    if decoded is None:
        if carrier is not None and TRACEPARENT_HEADER in carrier:
            logger.debug(
                "Malformed trace context, starting new trace",
                extra={"traceparent": carrier.get_first(TRACEPARENT_HEADER)},
            )
        return CausalContext.new_root()
    return decoded.child()


def inject_headers(ctx: CausalContext | None, headers: dict[str, Any] | None = None) -> dict[str, Any]:
    """Convenience wrapper returning transport headers with ctx injected."""
    carrier = inject(ctx, MessageCarrier())
    merged = dict(headers or {})
    merged.update(carrier.to_headers())
    return merged
