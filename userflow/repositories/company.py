"""
Company Repository.

Data access layer for companies.
"""

from sqlalchemy import select

from userflow.models.company import Company
from userflow.repositories.base import BaseRepository


class CompanyRepository(BaseRepository[Company]):
    """
    Repository for Company model.

    Inherits standard CRUD operations from BaseRepository
    and adds company-specific queries.
    """

    model = Company

    async def search_by_name(self, query: str, limit: int = 50) -> list[Company]:
        """
        Search companies by name (case-insensitive).

        Args:
            query: Search query string
            limit: Maximum number of results
        """
        result = await self.session.execute(
            select(Company)
            .where(Company.name.ilike(f"%{query}%"))
            .order_by(Company.created_at)
            .limit(limit)
        )
        return list(result.scalars().all())
