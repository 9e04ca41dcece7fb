from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from originality.core.exceptions import DatabaseError
from originality.utils.logging import get_logger

ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Common CRUD operations over one SQLAlchemy model.

    SQLAlchemy failures are logged and re-raised as ``DatabaseError``.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        self.session = session
        self.model = model
        self.logger = LOGGER

    def _fail(self, action: str, error: SQLAlchemyError) -> DatabaseError:
        self.logger.error(f"Error {action} {self.model.__name__}: {error}", exc_info=True)
        return DatabaseError(f"Error {action} {self.model.__name__}", original_error=error)

    def _filtered(self, query, filters: Optional[Dict[str, Any]]):
        for field, value in (filters or {}).items():
            if hasattr(self.model, field):
                query = query.where(getattr(self.model, field) == value)
        return query

    async def get_by_id(self, id: str) -> Optional[ModelType]:
        try:
            result = await self.session.execute(select(self.model).where(self.model.id == id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._fail(f"retrieving {id} of", e) from e

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 200,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[ModelType]:
        """Get records with optional pagination and equality filters."""
        try:
            query = self._filtered(select(self.model), filters).offset(skip).limit(limit)
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e

    async def create(self, **kwargs) -> ModelType:
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.flush()
            await self.session.commit()
            return instance
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise self._fail("creating", e) from e

    async def update(self, id: str, **kwargs) -> Optional[ModelType]:
        """Update fields of an existing record; None when it does not exist."""
        try:
            instance = await self.get_by_id(id)
            if not instance:
                return None
            for key, value in kwargs.items():
                if hasattr(instance, key):
                    setattr(instance, key, value)
            await self.session.flush()
            await self.session.commit()
            return instance
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise self._fail(f"updating {id} of", e) from e

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        try:
            query = self._filtered(select(func.count()).select_from(self.model), filters)
            result = await self.session.execute(query)
            return result.scalar_one()
        except SQLAlchemyError as e:
            raise self._fail("counting", e) from e
