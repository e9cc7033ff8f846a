"""
User Service.

Business logic behind the user RPC methods.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from userflow.core.utils import utc_now
from userflow.models.user import User
from userflow.repositories.user import UserRepository
from userflow.schemas.user import UserMessage
from userflow.services.base import BaseService


class UserService(BaseService):
    """Create, read, update and delete users."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = UserRepository(session)

    async def create_user(self, data: UserMessage) -> User:
        """
        Create a user, issuing an id when none is given.

        Timestamps supplied by the caller are kept; missing ones are set now.

        Raises:
            ValidationError: If name is empty
            ConflictError: If a user with the given id already exists
        """
        self._require(name=data.name)
        self._log_operation("Creating user", user_id=data.id or None, name=data.name)

        fields = {"name": data.name, "description": data.description}
        if data.id:
            fields["id"] = data.id
        if data.created_at is not None:
            fields["created_at"] = data.created_at
        if data.updated_at is not None:
            fields["updated_at"] = data.updated_at

        async with self._storage_errors("create_user", f"User {data.id}" if data.id else None):
            return await self.repo.create(**fields)

    async def get_user(self, user_id: str) -> User:
        """
        Raises:
            NotFoundError: If user not found
        """
        return await self.repo.get_by_id(user_id)

    async def update_user(self, data: UserMessage) -> User:
        """
        Update name and description; updated_at is set by the service.

        Raises:
            ValidationError: If id or name is empty
            NotFoundError: If user not found
        """
        self._require(id=data.id, name=data.name)
        self._log_operation("Updating user", user_id=data.id)
        async with self._storage_errors("update_user"):
            return await self.repo.update(
                data.id,
                name=data.name,
                description=data.description,
                updated_at=utc_now(),
            )

    async def delete_user(self, user_id: str) -> User:
        """
        Raises:
            NotFoundError: If user not found
        """
        self._log_operation("Deleting user", user_id=user_id)
        async with self._storage_errors("delete_user"):
            return await self.repo.delete(user_id)
