"""
Integration Tests for the User and Company Services.

Services and repositories against the in-memory store, without RPC or HTTP.
"""

import pytest

from userflow.core.exceptions import ConflictError, NotFoundError, ValidationError
from userflow.repositories.company import CompanyRepository
from userflow.repositories.user import UserRepository
from userflow.schemas.company import CompanyCreate, CompanyUpdate
from userflow.schemas.user import UserMessage
from userflow.services.company import CompanyService
from userflow.services.user import UserService


class TestUserService:
    @pytest.mark.asyncio
    async def test_create_issues_uuid(self, database):
        async with database.session() as session:
            user = await UserService(session).create_user(UserMessage(name="Alice"))

        assert len(user.id) == 36

    @pytest.mark.asyncio
    async def test_create_duplicate_id(self, database):
        async with database.session() as session:
            await UserService(session).create_user(UserMessage(id="u-1", name="Alice"))

        with pytest.raises(ConflictError):
            async with database.session() as session:
                await UserService(session).create_user(UserMessage(id="u-1", name="Alice"))

    @pytest.mark.asyncio
    async def test_create_blank_name(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await UserService(db_session).create_user(UserMessage(name="   "))

        assert exc_info.value.details == {"missing_fields": ["name"]}

    @pytest.mark.asyncio
    async def test_update_sets_updated_at(self, db_session):
        service = UserService(db_session)
        user = await service.create_user(UserMessage(name="Alice"))
        before = user.updated_at

        updated = await service.update_user(UserMessage(id=user.id, name="Alicia"))

        assert updated.name == "Alicia"
        assert updated.updated_at >= before

    @pytest.mark.asyncio
    async def test_delete_missing(self, db_session):
        with pytest.raises(NotFoundError):
            await UserService(db_session).delete_user("missing")


class TestRepositories:
    @pytest.mark.asyncio
    async def test_user_count(self, db_session):
        repo = UserRepository(db_session)
        await repo.create(name="Alice")
        await repo.create(name="Bob")

        assert await repo.count() == 2

    @pytest.mark.asyncio
    async def test_company_search_is_case_insensitive(self, db_session):
        repo = CompanyRepository(db_session)
        await repo.create(name="Acme")
        await repo.create(name="ACME Labs")
        await repo.create(name="Globex")

        found = await repo.search_by_name("acme")

        assert [c.name for c in found] == ["Acme", "ACME Labs"]


class TestCompanyService:
    @pytest.mark.asyncio
    async def test_update_sets_updated_at(self, db_session):
        service = CompanyService(db_session)
        company = await service.create_company(CompanyCreate(name="Acme"))
        before = company.updated_at

        updated = await service.update_company(company.id, CompanyUpdate(name="Acme Corp"))

        assert updated.name == "Acme Corp"
        assert updated.updated_at >= before

    @pytest.mark.asyncio
    async def test_update_missing(self, db_session):
        with pytest.raises(NotFoundError):
            await CompanyService(db_session).update_company("missing", CompanyUpdate(name="Acme"))

    @pytest.mark.asyncio
    async def test_create_and_list(self, db_session):
        service = CompanyService(db_session)
        await service.create_company(CompanyCreate(name="Acme"))
        await service.create_company(CompanyCreate(name="Globex"))

        assert [c.name for c in await service.list_companies()] == ["Acme", "Globex"]
        assert [c.name for c in await service.list_companies("glo")] == ["Globex"]

    @pytest.mark.asyncio
    async def test_delete_missing(self, db_session):
        with pytest.raises(NotFoundError):
            await CompanyService(db_session).delete_company("missing")
