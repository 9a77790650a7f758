"""
System settings repository.
"""
from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import SystemSettings
from app.repositories.base import BaseRepository


class SystemSettingsRepository(BaseRepository[SystemSettings]):
    """Repository for the singleton settings row."""

    def __init__(self, db: AsyncSession):
        super().__init__(SystemSettings, db)

    async def get_current(self) -> Optional[SystemSettings]:
        """Get the settings row, if it was created."""
        stmt = select(SystemSettings).order_by(SystemSettings.created_at).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self) -> SystemSettings:
        """Get the settings row, creating it on first use."""
        current = await self.get_current()
        if current is None:
            current = await self.create({})
        return current

    async def clear_free_use_key(self, key_id: UUID) -> None:
        """Clear the system free-use key if it points at the given key."""
        stmt = (
            update(SystemSettings)
            .where(SystemSettings.free_use_api_key_id == key_id)
            .values(free_use_api_key_id=None)
        )
        await self.db.execute(stmt)
