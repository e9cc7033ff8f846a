"""
Unit-of-work span scope.

Opens an OpenTelemetry span for one unit of work (an HTTP request, a
delivered message, an RPC) and makes its causal context current for logs
and outgoing calls.

When an SDK tracer provider is configured, the recorded span is parented on
the producer's span and the yielded context is rebased onto the span id the
SDK minted, so exported spans and propagated headers agree. Without an SDK,
the locally minted context is used as is.

Usage:
    ctx = extract(carrier)
    with span_scope("users.create", ctx) as ctx:
        await client.create_user(user, ctx)
"""

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.trace import NonRecordingSpan, SpanContext, SpanKind, TraceFlags

from userflow.tracing.context import CausalContext

_TRACER_NAME = "userflow"


def _parent_context(ctx: CausalContext) -> Context:
    """OpenTelemetry context whose current span is ctx's remote parent."""
    if ctx.parent_span_id is None:
        return Context()
    parent = SpanContext(
        trace_id=ctx.trace_id,
        span_id=ctx.parent_span_id,
        is_remote=True,
        trace_flags=TraceFlags(TraceFlags.SAMPLED if ctx.sampled else TraceFlags.DEFAULT),
        trace_state=ctx.to_span_context().trace_state,
    )
    return trace.set_span_in_context(NonRecordingSpan(parent), Context())


@contextmanager
def span_scope(
    name: str,
    ctx: CausalContext,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, str] | None = None,
) -> Iterator[CausalContext]:
    """
    Run a block as the unit of work described by ctx.

    Yields:
        The effective causal context for the block
    """
    tracer = trace.get_tracer(_TRACER_NAME)
    span = tracer.start_span(name, context=_parent_context(ctx), kind=kind, attributes=attributes)

    effective = ctx
    if span.is_recording():
        recorded = span.get_span_context()
        effective = ctx.model_copy(update={
            "trace_id": recorded.trace_id,
            "span_id": recorded.span_id,
        })
    else:
        span.end()
        span = NonRecordingSpan(ctx.to_span_context(remote=False))

    bound = effective.log_fields()
    structlog.contextvars.bind_contextvars(**bound)
    try:
        with trace.use_span(span, end_on_exit=True, record_exception=True, set_status_on_exception=True):
            yield effective
    finally:
        structlog.contextvars.unbind_contextvars(*bound)
