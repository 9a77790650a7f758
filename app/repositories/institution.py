"""
Institution and workshop repositories.
"""
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import Institution, Workshop
from app.repositories.base import BaseRepository


class InstitutionRepository(BaseRepository[Institution]):
    """Institution repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(Institution, db)

    async def list_all(self) -> List[Institution]:
        """List institutions ordered by name."""
        result = await self.db.execute(select(Institution).order_by(Institution.name))
        return list(result.scalars().all())

    async def clear_free_use_refs(self, share_ids: Sequence[UUID]) -> None:
        """Clear free-use pointers referencing any of the given shares."""
        if not share_ids:
            return
        stmt = (
            update(Institution)
            .where(Institution.free_use_api_key_share_id.in_(share_ids))
            .values(free_use_api_key_share_id=None)
        )
        await self.db.execute(stmt)


class WorkshopRepository(BaseRepository[Workshop]):
    """Workshop repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(Workshop, db)

    async def get_active(self, workshop_id: UUID) -> Optional[Workshop]:
        """Get a workshop that has not been soft deleted."""
        stmt = select(Workshop).where(
            Workshop.id == workshop_id,
            Workshop.deleted_at.is_(None),
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_institution(self, institution_id: UUID) -> List[Workshop]:
        """
        List workshops of an institution.

        Args:
            institution_id: Institution ID

        Returns:
            Workshops ordered by name
        """
        stmt = (
            select(Workshop)
            .where(
                Workshop.institution_id == institution_id,
                Workshop.deleted_at.is_(None),
            )
            .order_by(Workshop.name)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_ids_by_institution(self, institution_id: UUID) -> List[UUID]:
        """List workshop IDs of an institution, including soft deleted ones."""
        stmt = select(Workshop.id).where(Workshop.institution_id == institution_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def clear_default_share_refs(self, share_ids: Sequence[UUID]) -> None:
        """Clear workshop default-key pointers referencing any of the given shares."""
        if not share_ids:
            return
        stmt = (
            update(Workshop)
            .where(Workshop.default_api_key_share_id.in_(share_ids))
            .values(default_api_key_share_id=None)
        )
        await self.db.execute(stmt)
