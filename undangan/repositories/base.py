"""Base repository with common CRUD operations."""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, Concatenate

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

from undangan.exceptions.domain import EntityNotFoundError, StorageError
from undangan.utils.logger import logger

type FilterValueT = str | int | float | bool

# Set in AsyncSession.info while a transaction() block owns the commit
TRANSACTION_KEY = "undangan.transaction"


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Group repository writes on ``session`` into a single commit.

    Inside the block repositories flush instead of committing. The commit
    happens when the block exits; any exception rolls back every write made
    in it. Nested blocks join the outermost one.

    Args:
        session: Session shared by the repositories taking part

    Yields:
        The same session
    """
    if session.info.get(TRANSACTION_KEY):
        yield session
        return

    session.info[TRANSACTION_KEY] = True
    try:
        yield session
        await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Transaction failed: {e}")
        await session.rollback()
        raise StorageError("Database transaction failed") from e
    except Exception:
        await session.rollback()
        raise
    finally:
        session.info.pop(TRANSACTION_KEY, None)


def translate_storage_errors[RepoT: "BaseRepository", **P, R](
    method: Callable[Concatenate[RepoT, P], Awaitable[R]],
) -> Callable[Concatenate[RepoT, P], Awaitable[R]]:
    """Roll back and re-raise SQLAlchemy failures as StorageError.

    Args:
        method: Async repository method

    Returns:
        Wrapped method
    """

    @wraps(method)
    async def wrapper(self: RepoT, *args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(f"{type(self).__name__}.{method.__name__} failed: {e}")
            await self.session.rollback()
            raise StorageError(f"Database operation failed: {method.__name__}") from e

    return wrapper


class BaseRepository[ModelT: SQLModel]:
    """Base repository providing common database operations."""

    def __init__(self, session: AsyncSession, model_class: type[ModelT]):
        """Initialize repository with session and model class.

        Args:
            session: Database session
            model_class: SQLModel class this repository operates on
        """
        self.session = session
        self.model_class = model_class

    @property
    def in_transaction(self) -> bool:
        """Whether an enclosing transaction() block owns the commit."""
        return bool(self.session.info.get(TRANSACTION_KEY))

    async def _commit(self) -> None:
        if self.in_transaction:
            await self.session.flush()
        else:
            await self.session.commit()

    @translate_storage_errors
    async def get(self, id: Any) -> ModelT:
        """Get entity by ID or raise EntityNotFoundError.

        Args:
            id: Entity ID

        Returns:
            Found entity

        Raises:
            EntityNotFoundError: If entity doesn't exist
        """
        entity = await self.session.get(self.model_class, id)
        if not entity:
            raise EntityNotFoundError(f"{self.model_class.__name__} with ID {id} not found")
        return entity

    @translate_storage_errors
    async def get_optional(self, id: Any) -> ModelT | None:
        """Get entity by ID or return None.

        Args:
            id: Entity ID

        Returns:
            Found entity or None
        """
        return await self.session.get(self.model_class, id)

    @translate_storage_errors
    async def get_by(self, **filters: FilterValueT) -> ModelT | None:
        """Get single entity by filters.

        Args:
            **filters: Field-value pairs to filter by

        Returns:
            Found entity or None
        """
        statement = select(self.model_class)
        for field, value in filters.items():
            if hasattr(self.model_class, field):
                statement = statement.where(getattr(self.model_class, field) == value)

        result = await self.session.execute(statement)
        return result.scalars().first()

    @translate_storage_errors
    async def count(self, **filters: FilterValueT) -> int:
        """Count entities matching filters.

        Args:
            **filters: Field-value pairs to filter by

        Returns:
            Number of matching entities
        """
        statement = select(func.count()).select_from(self.model_class)

        for field, value in filters.items():
            if hasattr(self.model_class, field):
                statement = statement.where(getattr(self.model_class, field) == value)

        result = await self.session.execute(statement)
        return result.scalar() or 0

    @translate_storage_errors
    async def create(self, entity: ModelT) -> ModelT:
        """Create new entity.

        Args:
            entity: Entity to create

        Returns:
            Created entity with refreshed data
        """
        self.session.add(entity)
        await self._commit()
        await self.session.refresh(entity)
        return entity
