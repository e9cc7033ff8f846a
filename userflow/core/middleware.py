"""
Request Context Middleware.

Every HTTP request runs inside a span continuing the caller's `traceparent`
(or a new root trace) with request_id, method, path, source, trace_id and
span_id bound to structlog for its whole duration.

Response headers:
    X-Request-ID     - caller's value, or a generated UUID
    X-Trace-ID       - trace the request was handled under
    X-Response-Time  - duration in milliseconds

Handlers read request.state.request_id and request.state.causal_context.
"""

import time
import uuid

import structlog
from opentelemetry.trace import SpanKind
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from userflow.core.logging import get_logger
from userflow.tracing.carrier import MessageCarrier
from userflow.tracing.propagation import extract
from userflow.tracing.scope import span_scope

logger = get_logger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Request id, causal context and log binding for one service."""

    def __init__(self, app: ASGIApp, source: str = "gateway") -> None:
        super().__init__(app)
        self.source = source

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            source=self.source,
        )

        parent = extract(MessageCarrier.from_headers(request.headers.items()))
        try:
            with span_scope(
                f"{request.method} {request.url.path}",
                parent,
                kind=SpanKind.SERVER,
                attributes={"http.method": request.method, "http.target": request.url.path},
            ) as ctx:
                request.state.causal_context = ctx
                logger.debug(
                    "Request started",
                    extra={"client_host": request.client.host if request.client else None},
                )

                try:
                    response = await call_next(request)
                except Exception as exc:
                    logger.error(
                        "Request failed with exception",
                        extra={"duration_ms": _elapsed_ms(started), "error_type": type(exc).__name__},
                    )
                    raise

                duration_ms = _elapsed_ms(started)
                response.headers["X-Request-ID"] = request_id
                response.headers["X-Trace-ID"] = ctx.trace_id_hex
                response.headers["X-Response-Time"] = f"{duration_ms}ms"
                logger.debug(
                    "Request completed",
                    extra={"status_code": response.status_code, "duration_ms": duration_ms},
                )
                return response
        finally:
            structlog.contextvars.clear_contextvars()
