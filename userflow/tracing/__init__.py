"""
Trace context model, carrier, propagation and span scopes.
"""

from userflow.tracing.carrier import MessageCarrier
from userflow.tracing.context import CausalContext
from userflow.tracing.propagation import extract, inject
from userflow.tracing.scope import span_scope

__all__ = ["CausalContext", "MessageCarrier", "extract", "inject", "span_scope"]
