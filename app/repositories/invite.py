"""
Role invite repository.
"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import UserRoleInvite
from app.repositories.base import BaseRepository


class InviteRepository(BaseRepository[UserRoleInvite]):
    """Repository for institution and workshop role invites."""

    def __init__(self, db: AsyncSession):
        super().__init__(UserRoleInvite, db)

    async def get_by_token(self, token: str) -> Optional[UserRoleInvite]:
        """Get an open invite by its token."""
        stmt = select(UserRoleInvite).where(UserRoleInvite.invite_token == token)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_institution(self, institution_id: UUID) -> List[UserRoleInvite]:
        """
        List invites of an institution.

        Args:
            institution_id: Institution ID

        Returns:
            Invites, newest first
        """
        stmt = (
            select(UserRoleInvite)
            .where(UserRoleInvite.institution_id == institution_id)
            .order_by(UserRoleInvite.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_pending_for_user(
        self,
        user_id: UUID,
        email: Optional[str],
    ) -> List[UserRoleInvite]:
        """List pending targeted invites addressed to a user by ID or email."""
        conditions = UserRoleInvite.invited_user_id == user_id
        if email:
            conditions = conditions | (UserRoleInvite.invited_email == email)
        stmt = (
            select(UserRoleInvite)
            .where(conditions, UserRoleInvite.status == "pending")
            .order_by(UserRoleInvite.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def delete_by_institution(self, institution_id: UUID) -> None:
        """Delete every invite of an institution."""
        await self.db.execute(
            delete(UserRoleInvite).where(UserRoleInvite.institution_id == institution_id)
        )
