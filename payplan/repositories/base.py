"""
Base repository.

Generic row access shared by the compensation repositories.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from payplan.models.base import Base

# Generic type for model
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with generic row operations.

    Repositories only read and write rows. Plan rules (unlocks, caps,
    forfeiture) live in services.

    Type Parameters:
        ModelType: SQLAlchemy model class

    Example:
        class MatchingRunRepository(BaseRepository[MatchingRun]):
            def __init__(self, session: AsyncSession):
                super().__init__(MatchingRun, session)
    """

    def __init__(
        self, model: type[ModelType], session: AsyncSession
    ) -> None:
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def get_by_id(self, id: int) -> ModelType | None:
        """Get row by primary key (identity map first)."""
        return await self.session.get(self.model, id)

    async def get_by(self, **filters: Any) -> ModelType | None:
        """
        Get single row by column filters.

        Args:
            **filters: Column filters

        Returns:
            Row or None
        """
        stmt = select(self.model).filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def lock(self, id: int) -> ModelType | None:
        """
        Get row by primary key with SELECT FOR UPDATE.

        The row is re-read even if it is already in the identity map.

        Args:
            id: Primary key

        Returns:
            Locked row or None
        """
        stmt = (
            select(self.model)
            .where(self.model.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, **data: Any) -> ModelType:
        """
        Insert a row and load server defaults.

        Args:
            **data: Column values

        Returns:
            Flushed row with its primary key
        """
        entity = self.model(**data)
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def update(self, id: int, **data: Any) -> ModelType | None:
        """
        Set columns on a row by primary key.

        Args:
            id: Primary key
            **data: Column values

        Returns:
            Updated row or None if not found
        """
        entity = await self.get_by_id(id)
        if entity is None:
            return None

        for key, value in data.items():
            setattr(entity, key, value)

        await self.session.flush()
        return entity
