"""
Company Service.

Business logic layer for companies.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from userflow.models.company import Company
from userflow.repositories.company import CompanyRepository
from userflow.core.utils import utc_now
from userflow.schemas.company import CompanyCreate, CompanyUpdate
from userflow.services.base import BaseService


class CompanyService(BaseService):
    """Company creation, lookup and deletion."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = CompanyRepository(session)

    async def create_company(self, data: CompanyCreate) -> Company:
        self._log_operation("Creating company", name=data.name)
        async with self._storage_errors("create_company"):
            return await self.repo.create(name=data.name, description=data.description)

    async def get_company(self, company_id: str) -> Company:
        """
        Raises:
            NotFoundError: If company not found
        """
        return await self.repo.get_by_id(company_id)

    async def update_company(self, company_id: str, data: CompanyUpdate) -> Company:
        """
        Replace name and description; updated_at is set by the service.

        Raises:
            NotFoundError: If company not found
        """
        self._log_operation("Updating company", company_id=company_id)
        async with self._storage_errors("update_company"):
            return await self.repo.update(
                company_id,
                name=data.name,
                description=data.description,
                updated_at=utc_now(),
            )

    async def list_companies(self, query: str | None = None, limit: int = 50, offset: int = 0) -> list[Company]:
        """List companies, optionally filtered by a name search."""
        if query:
            return await self.repo.search_by_name(query, limit=limit)
        return await self.repo.get_all(limit=limit, offset=offset)

    async def delete_company(self, company_id: str) -> None:
        """
        Raises:
            NotFoundError: If company not found
        """
        self._log_operation("Deleting company", company_id=company_id)
        async with self._storage_errors("delete_company"):
            await self.repo.delete(company_id)
