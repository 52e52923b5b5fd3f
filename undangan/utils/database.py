"""
Database utilities for Undangan.

This module provides the session dependency used by the API layer.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from .db_manager import db_manager


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session as a FastAPI dependency.

    Usage:
        @router.get("/me")
        async def me(session: AsyncSession = Depends(get_async_session)):
            ...

    Yields:
        AsyncSession: SQLModel async session
    """
    async for session in db_manager.get_async_session():
        yield session
