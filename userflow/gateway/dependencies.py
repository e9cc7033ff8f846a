"""
Gateway Dependencies.

Every collaborator the gateway handlers need is built once in the
application lifespan, held by GatewayDependencies on app.state, and handed
to handlers through FastAPI dependencies.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from userflow.events.queue import WorkQueue
from userflow.gateway.company_client import CompanyClient
from userflow.rpc.client import UserServiceClient
from userflow.tracing.context import CausalContext


@dataclass
class GatewayDependencies:
    user_client: UserServiceClient
    company_client: CompanyClient
    work_queue: WorkQueue
    create_user_subject: str

    async def close(self) -> None:
        await self.work_queue.close()
        await self.user_client.close()
        await self.company_client.close()


def get_gateway_dependencies(request: Request) -> GatewayDependencies:
    return request.app.state.deps


def get_causal_context(request: Request) -> CausalContext:
    """The causal context of the current request, set by RequestContextMiddleware."""
    ctx = getattr(request.state, "causal_context", None)
    return ctx if ctx is not None else CausalContext.new_root()


Deps = Annotated[GatewayDependencies, Depends(get_gateway_dependencies)]
RequestContext = Annotated[CausalContext, Depends(get_causal_context)]
