"""
Company Endpoints.

Proxies to the company REST service. The company service's status code and
response envelope are passed through unchanged.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from userflow.gateway.dependencies import Deps, RequestContext
from userflow.schemas.company import CompanyCreate, CompanyUpdate

router = APIRouter()


@router.get("/{company_id}", summary="Get a company")
async def get_company(company_id: str, deps: Deps, ctx: RequestContext) -> JSONResponse:
    status_code, body = await deps.company_client.get_company(company_id, ctx)
    return JSONResponse(status_code=status_code, content=body)


@router.get("", summary="List companies")
async def list_companies(
    deps: Deps,
    ctx: RequestContext,
    q: str | None = Query(default=None, description="Filter by name"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> JSONResponse:
    params: dict[str, str | int] = {"limit": limit, "offset": offset}
    if q:
        params["q"] = q
    status_code, body = await deps.company_client.list_companies(ctx, params=params)
    return JSONResponse(status_code=status_code, content=body)


@router.post("", status_code=201, summary="Create a company")
async def create_company(data: CompanyCreate, deps: Deps, ctx: RequestContext) -> JSONResponse:
    status_code, body = await deps.company_client.create_company(data.model_dump(), ctx)
    return JSONResponse(status_code=status_code, content=body)


@router.put("/{company_id}", summary="Update a company")
async def update_company(company_id: str, data: CompanyUpdate, deps: Deps, ctx: RequestContext) -> JSONResponse:
    status_code, body = await deps.company_client.update_company(company_id, data.model_dump(), ctx)
    return JSONResponse(status_code=status_code, content=body)


@router.delete("/{company_id}", summary="Delete a company")
async def delete_company(company_id: str, deps: Deps, ctx: RequestContext) -> JSONResponse:
    status_code, body = await deps.company_client.delete_company(company_id, ctx)
    return JSONResponse(status_code=status_code, content=body)
