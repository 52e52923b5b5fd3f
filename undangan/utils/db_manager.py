"""
Database engine and session management for Undangan.

The engine is built on first use from settings, so importing this module
never opens a connection. ``close()`` drops the engine; the next access
builds a new one.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from ..settings import DatabaseDriver, settings
from ..utils.logger import logger


class DatabaseManager:
    """Owns the async engine and the session factory bound to it."""

    def __init__(self) -> None:
        self._async_engine: AsyncEngine | None = None
        self._async_session_factory: async_sessionmaker[AsyncSession] | None = None

    def _create_async_engine(self) -> AsyncEngine:
        if settings.database_driver == DatabaseDriver.SQLITE:
            # One shared connection in debug keeps SQLite writes serialized
            engine = create_async_engine(
                settings.database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool if settings.debug else None,
                echo=settings.debug,
            )
        else:
            engine = create_async_engine(
                settings.database_url,
                echo=settings.debug,
                pool_size=20,
                max_overflow=0,
                pool_pre_ping=True,
            )

        logger.info(f"Database engine created for {settings.database_driver.value}")
        return engine

    @property
    def async_engine(self) -> AsyncEngine:
        """The engine, created on first access."""
        if self._async_engine is None:
            self._async_engine = self._create_async_engine()
        return self._async_engine

    @property
    def async_session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Session factory; sessions keep loaded attributes after commit."""
        if self._async_session_factory is None:
            self._async_session_factory = async_sessionmaker(
                self.async_engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
        return self._async_session_factory

    async def create_db_and_tables_async(self) -> None:
        """Create the user and session tables if they are missing."""
        # Importing the models registers their tables on SQLModel.metadata
        from ..models import User, UserSession  # noqa: F401

        async with self.async_engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("Database schema is up to date")

    @asynccontextmanager
    async def get_async_session_context(self) -> AsyncGenerator[AsyncSession]:
        """
        Open a session that commits on success and rolls back on database errors.

        Usage:
            async with db_manager.get_async_session_context() as session:
                await SessionRepository(session).delete_expired(utc_now())
        """
        async with self.async_session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                logger.error(f"Database error, rolling back: {e}")
                await session.rollback()
                raise

    async def get_async_session(self) -> AsyncGenerator[AsyncSession]:
        """Per-request session for the FastAPI dependency."""
        async with self.get_async_session_context() as session:
            yield session

    async def close(self) -> None:
        """Dispose the engine and forget the session factory."""
        if self._async_engine is None:
            return
        await self._async_engine.dispose()
        self._async_engine = None
        self._async_session_factory = None
        logger.info("Database engine disposed")


db_manager = DatabaseManager()
