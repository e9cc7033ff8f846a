"""
User Repository.

Data access layer for users.
"""

from userflow.models.user import User
from userflow.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User model."""

    model = User
