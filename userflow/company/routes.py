"""
Company API Endpoints.

REST API endpoints for company management.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from userflow.schemas.base import ApiResponse, ResponseMetadata
from userflow.schemas.company import CompanyCreate, CompanyResponse, CompanyUpdate
from userflow.services.company import CompanyService

router = APIRouter()


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Session on the company store, committed when the request succeeds."""
    async with request.app.state.database.session() as session:
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db_session)]


def _metadata(request: Request) -> ResponseMetadata:
    ctx = getattr(request.state, "causal_context", None)
    return ResponseMetadata(
        request_id=getattr(request.state, "request_id", None),
        trace_id=ctx.trace_id_hex if ctx is not None else None,
    )


@router.post(
    "",
    response_model=ApiResponse[CompanyResponse],
    status_code=201,
    summary="Create a company",
)
async def create_company(data: CompanyCreate, db: DbSession, request: Request) -> ApiResponse[CompanyResponse]:
    company = await CompanyService(db).create_company(data)
    return ApiResponse(data=CompanyResponse.model_validate(company), metadata=_metadata(request))


@router.get(
    "",
    response_model=ApiResponse[list[CompanyResponse]],
    summary="List companies",
)
async def list_companies(
    db: DbSession,
    request: Request,
    q: str | None = Query(default=None, description="Filter by name"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> ApiResponse[list[CompanyResponse]]:
    companies = await CompanyService(db).list_companies(q, limit=limit, offset=offset)
    return ApiResponse(
        data=[CompanyResponse.model_validate(c) for c in companies],
        metadata=_metadata(request),
    )


@router.get(
    "/{company_id}",
    response_model=ApiResponse[CompanyResponse],
    summary="Get a company",
)
async def get_company(company_id: str, db: DbSession, request: Request) -> ApiResponse[CompanyResponse]:
    company = await CompanyService(db).get_company(company_id)
    return ApiResponse(data=CompanyResponse.model_validate(company), metadata=_metadata(request))


@router.put(
    "/{company_id}",
    response_model=ApiResponse[CompanyResponse],
    summary="Update a company",
)
async def update_company(
    company_id: str, data: CompanyUpdate, db: DbSession, request: Request,
) -> ApiResponse[CompanyResponse]:
    company = await CompanyService(db).update_company(company_id, data)
    return ApiResponse(data=CompanyResponse.model_validate(company), metadata=_metadata(request))


@router.delete(
    "/{company_id}",
    response_model=ApiResponse[dict[str, str]],
    summary="Delete a company",
)
async def delete_company(company_id: str, db: DbSession, request: Request) -> ApiResponse[dict[str, str]]:
    await CompanyService(db).delete_company(company_id)
    return ApiResponse(data={"id": company_id, "status": "deleted"}, metadata=_metadata(request))
