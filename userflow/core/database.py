"""
Database Configuration.

SQLAlchemy async engine and session management. Each service builds one
Database for its own store at startup and hands it to the code that needs
it; there is no module-level engine.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from userflow.core.config_schema import StoreSchema
from userflow.core.logging import get_logger
from userflow.models.base import Base

logger = get_logger(__name__)


class Database:
    """Engine and session factory for one SQL store."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_config(cls, store: StoreSchema) -> "Database":
        """Create a Database from a database.yaml store entry."""
        engine = create_async_engine(store.url, echo=store.echo)
        logger.debug("Database engine created", extra={"url": store.url.split("@")[-1]})
        return cls(engine)

    async def create_tables(self, *models: type[Base]) -> None:
        """Create the tables of the given models if they do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(
                Base.metadata.create_all,
                tables=[model.__table__ for model in models],
            )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Provide a session that commits on success and rolls back on error.

        Usage:
            async with database.session() as session:
                ...
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def dispose(self) -> None:
        await self.engine.dispose()
