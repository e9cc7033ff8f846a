"""
Company Model.

Database model owned by the company REST service.
"""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from userflow.models.base import Base, TimestampMixin, UUIDMixin


class Company(UUIDMixin, TimestampMixin, Base):
    """Company database model."""

    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    def __repr__(self) -> str:
        return f"<Company(id={self.id}, name={self.name!r})>"
