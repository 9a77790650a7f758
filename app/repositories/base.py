"""
Base repository implementation.

Repositories only add and flush; committing is the job of the
``UnitOfWork`` that owns the session.
"""
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """CRUD operations shared by every aggregate repository."""

    def __init__(
        self,
        model: Type[ModelType],
        db: AsyncSession,
    ):
        self.model = model
        self.db = db

    @property
    def soft_deletes(self) -> bool:
        return hasattr(self.model, "deleted_at")

    async def create(self, data: Dict[str, Any]) -> ModelType:
        """
        Add a record and flush it so that generated columns are populated.

        Args:
            data: Column values

        Returns:
            Created record (flushed, not committed)
        """
        db_obj = self.model(**data)
        self.db.add(db_obj)
        await self.db.flush()
        await self.db.refresh(db_obj)
        return db_obj

    async def get(self, id: UUID) -> Optional[ModelType]:
        """Get a record by primary key, soft-deleted rows included."""
        return await self.db.get(self.model, id)

    async def get_multi(
        self,
        *,
        skip: int = 0,
        limit: int = 100,
        include_deleted: bool = False,
    ) -> List[ModelType]:
        """
        Page through records, oldest first.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return
            include_deleted: Also return soft-deleted rows

        Returns:
            List of records
        """
        stmt = select(self.model)
        if self.soft_deletes and not include_deleted:
            stmt = stmt.where(self.model.deleted_at.is_(None))
        stmt = stmt.order_by(self.model.created_at).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def update(self, id: UUID, data: Dict[str, Any]) -> Optional[ModelType]:
        """
        Set the given columns on a record.

        Returns:
            Updated record, or None if it does not exist
        """
        db_obj = await self.get(id)
        if db_obj is None:
            return None

        for field, value in data.items():
            setattr(db_obj, field, value)

        await self.db.flush()
        return db_obj

    async def delete(self, id: UUID) -> bool:
        """Hard delete a record. Returns False if it does not exist."""
        db_obj = await self.get(id)
        if db_obj is None:
            return False

        await self.db.delete(db_obj)
        await self.db.flush()
        return True
