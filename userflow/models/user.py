"""
User Model.

Rows created by the user RPC service, either synchronously from the
gateway or asynchronously from the user-creation worker.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from userflow.models.base import Base, TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, Base):
    """User database model."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name={self.name!r})>"
