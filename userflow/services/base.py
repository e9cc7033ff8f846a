"""
Base Service.

Services own business rules and translate storage failures into the
application's error vocabulary, so callers above them (RPC servicer, REST
routes) only ever see ApplicationError subclasses.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from userflow.core.exceptions import (
    ConflictError,
    DatabaseError,
    ValidationError,
)
from userflow.core.logging import get_logger


class BaseService:
    """Shared session, logger and error translation for services."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._logger = get_logger(self.__class__.__module__)

    @property
    def session(self) -> AsyncSession:
        return self._session

    @asynccontextmanager
    async def _storage_errors(self, operation: str, resource: str | None = None) -> AsyncIterator[None]:
        """
        Translate SQLAlchemy errors raised inside the block.

        Raises:
            ConflictError: On a unique/primary key violation
            DatabaseError: On any other storage failure
        """
        try:
            yield
        except IntegrityError as e:
            self._logger.warning(
                "Write rejected by store constraint",
                extra={"operation": operation, "resource": resource, "error": str(e.orig)},
            )
            if "unique" in str(e.orig).lower():
                raise ConflictError(f"{resource or 'Resource'} already exists") from e
            raise DatabaseError(f"Constraint violation during {operation}") from e
        except SQLAlchemyError as e:
            self._logger.error(
                "Store unavailable",
                extra={"operation": operation, "error": str(e)},
            )
            raise DatabaseError(f"{operation} failed") from e

    @staticmethod
    def _require(**fields: Any) -> None:
        """
        Raises:
            ValidationError: Listing every field that is None or blank
        """
        missing = [
            name for name, value in fields.items()
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise ValidationError(
                f"Required fields missing: {', '.join(missing)}",
                details={"missing_fields": missing},
            )

    def _log_operation(self, operation: str, **context: Any) -> None:
        self._logger.info(operation, extra={"service": self.__class__.__name__, **context})
