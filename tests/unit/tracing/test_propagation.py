"""
Unit tests for userflow.tracing.propagation.

Covers the injector/extractor contract: round-trip linkage, graceful
degradation on bad headers, and the empty-context no-op.
"""

import pytest

from userflow.tracing.carrier import MessageCarrier
from userflow.tracing.context import CausalContext
from userflow.tracing.propagation import (
    TRACEPARENT_HEADER,
    TRACESTATE_HEADER,
    decode,
    extract,
    inject,
    inject_headers,
)


class TestInject:
    def test_writes_versioned_traceparent(self, producer_ctx):
        carrier = inject(producer_ctx, MessageCarrier())
        assert carrier.get(TRACEPARENT_HEADER) == [
            "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"
        ]

    def test_unsampled_flag(self):
        ctx = CausalContext(trace_id=1, span_id=2, sampled=False)
        value = inject(ctx, MessageCarrier()).get_first(TRACEPARENT_HEADER)
        assert value.endswith("-00")

    def test_writes_tracestate_when_present(self):
        ctx = CausalContext(trace_id=1, span_id=2, trace_state="vendor=abc")
        carrier = inject(ctx, MessageCarrier())
        assert carrier.get_first(TRACESTATE_HEADER) == "vendor=abc"

    def test_omits_tracestate_when_absent(self, producer_ctx):
        carrier = inject(producer_ctx, MessageCarrier())
        assert TRACESTATE_HEADER not in carrier

    def test_empty_context_leaves_carrier_unchanged(self):
        carrier = MessageCarrier({"x-existing": "1"})
        before = MessageCarrier({"x-existing": "1"})
        result = inject(CausalContext.empty(), carrier)
        assert result is carrier
        assert carrier == before

    def test_none_context_leaves_carrier_unchanged(self):
        carrier = MessageCarrier()
        inject(None, carrier)
        assert len(carrier) == 0

    def test_keeps_unrelated_headers(self, producer_ctx):
        carrier = inject(producer_ctx, MessageCarrier({"x-request-id": "r1"}))
        assert carrier.get_first("x-request-id") == "r1"


class TestExtract:
    def test_round_trip_links_child_to_producer(self, producer_ctx):
        carrier = inject(producer_ctx, MessageCarrier())
        ctx = extract(carrier)
        assert ctx.trace_id == producer_ctx.trace_id
        assert ctx.parent_span_id == producer_ctx.span_id
        assert ctx.span_id != producer_ctx.span_id

    @pytest.mark.parametrize("sampled", [True, False])
    def test_round_trip_keeps_sampling(self, sampled):
        producer = CausalContext.new_root(sampled=sampled)
        assert extract(inject(producer, MessageCarrier())).sampled is sampled

    def test_round_trip_keeps_tracestate(self):
        producer = CausalContext(trace_id=7, span_id=8, trace_state="vendor=abc")
        assert extract(inject(producer, MessageCarrier())).trace_state == "vendor=abc"

    def test_round_trip_over_transport_headers(self, producer_ctx):
        headers = inject(producer_ctx, MessageCarrier()).to_headers()
        ctx = extract(MessageCarrier.from_headers({k.upper(): v for k, v in headers.items()}))
        assert ctx.parent_span_id == producer_ctx.span_id

    def test_missing_header_starts_new_trace(self):
        ctx = extract(MessageCarrier({"x-other": "1"}))
        assert ctx.is_valid
        assert ctx.parent_span_id is None

    def test_none_carrier_starts_new_trace(self):
        ctx = extract(None)
        assert ctx.is_valid
        assert ctx.parent_span_id is None

    @pytest.mark.parametrize(
        "traceparent",
        [
            "",
            "garbage",
            "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7",
            "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01-extra",
            "00-4bf92f3577b34da6a3ce929d0e0e47zz-00f067aa0ba902b7-01",
            "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902zz-01",
            "00-00000000000000000000000000000000-00f067aa0ba902b7-01",
            "00-4bf92f3577b34da6a3ce929d0e0e4736-0000000000000000-01",
            "00-4bf92f3577b34da6a3ce929d0e0e473-00f067aa0ba902b7-01",
            "01-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01",
            "ff-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01",
        ],
    )
    def test_malformed_header_starts_new_trace(self, traceparent):
        ctx = extract(MessageCarrier({TRACEPARENT_HEADER: traceparent}))
        assert ctx.is_valid
        assert ctx.parent_span_id is None
        assert ctx.trace_id != 0x4BF92F3577B34DA6A3CE929D0E0E4736

    def test_decoder_failure_never_raises(self, monkeypatch):
        def boom(carrier):
            raise RuntimeError("decoder bug")

        monkeypatch.setattr("userflow.tracing.propagation.decode", boom)
        ctx = extract(MessageCarrier({TRACEPARENT_HEADER: "00-x"}))
        assert ctx.is_valid
        assert ctx.parent_span_id is None


class TestDecode:
    def test_returns_producer_context_unchanged(self, producer_ctx):
        decoded = decode(inject(producer_ctx, MessageCarrier()))
        assert decoded.trace_id == producer_ctx.trace_id
        assert decoded.span_id == producer_ctx.span_id

    def test_returns_none_without_header(self):
        assert decode(MessageCarrier()) is None


class TestInjectHeaders:
    def test_merges_into_existing_headers(self, producer_ctx):
        headers = inject_headers(producer_ctx, {"accept": "application/json"})
        assert headers["accept"] == "application/json"
        assert headers[TRACEPARENT_HEADER].startswith("00-")

    def test_empty_context(self):
        assert inject_headers(None) == {}
