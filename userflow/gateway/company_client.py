"""
Company Service Client.

httpx client for the company REST service. Every request carries the
gateway request's causal context as `traceparent`/`tracestate` headers.
Idempotent GETs are retried on connection errors; writes are sent once.

Responses are returned as (status_code, json_body) so the gateway can pass
the company service's envelope through unchanged.
"""

from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from userflow.core.exceptions import ExternalServiceError, RpcTransportError
from userflow.core.logging import get_logger
from userflow.core.resilience import log_retry
from userflow.tracing.context import CausalContext
from userflow.tracing.propagation import inject_headers

logger = get_logger(__name__)

CompanyResult = tuple[int, Any]


class CompanyClient:
    """Timeout-bounded client for the company REST service."""

    def __init__(self, base_url: str, timeout: float, client: httpx.AsyncClient | None = None) -> None:
        self.base_url = base_url
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def _send(
        self,
        method: str,
        path: str,
        ctx: CausalContext | None,
        **kwargs: Any,
    ) -> CompanyResult:
        try:
            response = await self._client.request(method, path, headers=inject_headers(ctx), **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("Company service timed out", extra={"method": method, "path": path})
            raise RpcTransportError(f"Company service timed out: {method} {path}") from exc
        except httpx.TransportError as exc:
            logger.warning(
                "Company service unreachable",
                extra={"method": method, "path": path, "error": str(exc)},
            )
            raise
        try:
            body = response.json()
        except ValueError as exc:
            raise ExternalServiceError(
                f"Company service returned a non-JSON body ({response.status_code})"
            ) from exc
        return response.status_code, body

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, max=1),
        retry=retry_if_exception_type(httpx.TransportError),
        before_sleep=log_retry,
        reraise=True,
    )
    async def _get(self, path: str, ctx: CausalContext | None, **kwargs: Any) -> CompanyResult:
        return await self._send("GET", path, ctx, **kwargs)

    async def _call(self, method: str, path: str, ctx: CausalContext | None, **kwargs: Any) -> CompanyResult:
        try:
            if method == "GET":
                return await self._get(path, ctx, **kwargs)
            return await self._send(method, path, ctx, **kwargs)
        except httpx.TransportError as exc:
            raise ExternalServiceError(f"Company service unavailable: {exc}") from exc

    async def get_company(self, company_id: str, ctx: CausalContext | None = None) -> CompanyResult:
        return await self._call("GET", f"/companies/{company_id}", ctx)

    async def list_companies(
        self, ctx: CausalContext | None = None, params: dict[str, Any] | None = None,
    ) -> CompanyResult:
        return await self._call("GET", "/companies", ctx, params=params or {})

    async def create_company(self, body: dict[str, Any], ctx: CausalContext | None = None) -> CompanyResult:
        return await self._call("POST", "/companies", ctx, json=body)

    async def update_company(
        self, company_id: str, body: dict[str, Any], ctx: CausalContext | None = None,
    ) -> CompanyResult:
        return await self._call("PUT", f"/companies/{company_id}", ctx, json=body)

    async def delete_company(self, company_id: str, ctx: CausalContext | None = None) -> CompanyResult:
        return await self._call("DELETE", f"/companies/{company_id}", ctx)

    async def close(self) -> None:
        await self._client.aclose()
