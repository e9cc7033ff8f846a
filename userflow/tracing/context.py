"""
Causal Context.

Immutable trace/span identifiers linking related units of work across
process boundaries. A new span id is minted for every logical unit of work;
the trace id is kept and the parent link points at the context it was
derived from.

Usage:
    from userflow.tracing.context import CausalContext

    root = CausalContext.new_root()
    child = root.child()
    assert child.trace_id == root.trace_id
    assert child.parent_span_id == root.span_id
"""

from opentelemetry.sdk.trace.id_generator import RandomIdGenerator
from opentelemetry.trace import (
    INVALID_SPAN_ID,
    INVALID_TRACE_ID,
    SpanContext,
    TraceFlags,
    TraceState,
)
from pydantic import BaseModel, ConfigDict, Field

_id_generator = RandomIdGenerator()

TRACE_ID_MAX = (1 << 128) - 1
SPAN_ID_MAX = (1 << 64) - 1


class CausalContext(BaseModel):
    """Trace identifiers for one unit of work."""

    model_config = ConfigDict(frozen=True)

    trace_id: int = Field(ge=0, le=TRACE_ID_MAX)
    span_id: int = Field(ge=0, le=SPAN_ID_MAX)
    parent_span_id: int | None = Field(default=None, ge=1, le=SPAN_ID_MAX)
    sampled: bool = True
    trace_state: str | None = None

    @classmethod
    def new_root(cls, sampled: bool = True) -> "CausalContext":
        """Start a new trace with no parent."""
        return cls(
            trace_id=_id_generator.generate_trace_id(),
            span_id=_id_generator.generate_span_id(),
            sampled=sampled,
        )

    @classmethod
    def empty(cls) -> "CausalContext":
        """The absent context. Injecting it writes nothing."""
        return cls(trace_id=INVALID_TRACE_ID, span_id=INVALID_SPAN_ID)

    @classmethod
    def from_span_context(
        cls,
        span_context: SpanContext,
        parent_span_id: int | None = None,
    ) -> "CausalContext":
        """Build from an OpenTelemetry SpanContext."""
        trace_state = span_context.trace_state.to_header() if span_context.trace_state else None
        return cls(
            trace_id=span_context.trace_id,
            span_id=span_context.span_id,
            parent_span_id=parent_span_id,
            sampled=span_context.trace_flags.sampled,
            trace_state=trace_state or None,
        )

    @property
    def is_valid(self) -> bool:
        return self.trace_id != INVALID_TRACE_ID and self.span_id != INVALID_SPAN_ID

    @property
    def trace_id_hex(self) -> str:
        return format(self.trace_id, "032x")

    @property
    def span_id_hex(self) -> str:
        return format(self.span_id, "016x")

    @property
    def parent_span_id_hex(self) -> str | None:
        if self.parent_span_id is None:
            return None
        return format(self.parent_span_id, "016x")

    def child(self) -> "CausalContext":
        """Mint a new span in the same trace, parented on this one."""
        return CausalContext(
            trace_id=self.trace_id,
            span_id=_id_generator.generate_span_id(),
            parent_span_id=self.span_id,
            sampled=self.sampled,
            trace_state=self.trace_state,
        )

    def to_span_context(self, remote: bool = True) -> SpanContext:
        """Convert to an OpenTelemetry SpanContext (used by the propagator)."""
        return SpanContext(
            trace_id=self.trace_id,
            span_id=self.span_id,
            is_remote=remote,
            trace_flags=TraceFlags(TraceFlags.SAMPLED if self.sampled else TraceFlags.DEFAULT),
            trace_state=TraceState.from_header([self.trace_state]) if self.trace_state else TraceState(),
        )

    def log_fields(self) -> dict[str, str]:
        """Fields bound into structlog for correlation."""
        fields = {"trace_id": self.trace_id_hex, "span_id": self.span_id_hex}
        if self.parent_span_id is not None:
            fields["parent_span_id"] = self.parent_span_id_hex
        return fields
