"""
User and role repositories.
"""
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import User, UserRole, Workshop
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """User repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def get_active(self, user_id: UUID) -> Optional[User]:
        """
        Get a user that has not been soft deleted.

        Args:
            user_id: User ID

        Returns:
            User if found
        """
        stmt = select(User).where(User.id == user_id, User.deleted_at.is_(None))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(
        self,
        email: str,
    ) -> Optional[User]:
        """
        Get user by email.

        Args:
            email: User email

        Returns:
            User if found
        """
        stmt = select(User).where(User.email == email)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def set_default_share(self, user_id: UUID, share_id: Optional[UUID]) -> None:
        """Point the user's default-key pointer at a self-share (or clear it)."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(default_api_key_share_id=share_id)
        )
        await self.db.execute(stmt)

    async def clear_default_share_refs(self, share_ids: Sequence[UUID]) -> None:
        """Clear default-key pointers referencing any of the given shares."""
        if not share_ids:
            return
        stmt = (
            update(User)
            .where(User.default_api_key_share_id.in_(share_ids))
            .values(default_api_key_share_id=None)
        )
        await self.db.execute(stmt)

    async def list_members(self, institution_id: UUID) -> List[Tuple[User, UserRole]]:
        """
        List users whose role is scoped to an institution or one of its workshops.

        Args:
            institution_id: Institution ID

        Returns:
            (user, role) pairs ordered by name
        """
        workshop_ids = select(Workshop.id).where(Workshop.institution_id == institution_id)
        stmt = (
            select(User, UserRole)
            .join(UserRole, UserRole.user_id == User.id)
            .where(
                User.deleted_at.is_(None),
                or_(
                    UserRole.institution_id == institution_id,
                    UserRole.workshop_id.in_(workshop_ids),
                ),
            )
            .order_by(User.name)
        )
        result = await self.db.execute(stmt)
        return [(user, role) for user, role in result.all()]

    async def list_workshop_members(self, workshop_id: UUID) -> List[Tuple[User, UserRole]]:
        """List users whose role is scoped to a workshop."""
        stmt = (
            select(User, UserRole)
            .join(UserRole, UserRole.user_id == User.id)
            .where(User.deleted_at.is_(None), UserRole.workshop_id == workshop_id)
            .order_by(User.name)
        )
        result = await self.db.execute(stmt)
        return [(user, role) for user, role in result.all()]


class UserRoleRepository(BaseRepository[UserRole]):
    """Repository for the single active role of each user."""

    def __init__(self, db: AsyncSession):
        super().__init__(UserRole, db)

    async def get_for_user(self, user_id: UUID) -> Optional[UserRole]:
        """Get the active role of a user."""
        stmt = select(UserRole).where(UserRole.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def replace(
        self,
        user_id: UUID,
        role: str,
        institution_id: Optional[UUID] = None,
        workshop_id: Optional[UUID] = None,
        created_by: Optional[UUID] = None,
    ) -> UserRole:
        """
        Replace the user's role: delete the old row, then insert the new one.

        Must run inside a transaction so both writes land together.

        Args:
            user_id: User ID
            role: New role name
            institution_id: Institution scope
            workshop_id: Workshop scope
            created_by: Acting user, defaults to the user itself

        Returns:
            The new role row
        """
        await self.remove_for_user(user_id)
        return await self.create({
            "user_id": user_id,
            "role": role,
            "institution_id": institution_id,
            "workshop_id": workshop_id,
            "created_by": created_by or user_id,
        })

    async def remove_for_user(self, user_id: UUID) -> None:
        """Delete the role row of a user, if any."""
        await self.db.execute(delete(UserRole).where(UserRole.user_id == user_id))

    async def count_heads(self, institution_id: UUID) -> int:
        """Count head-role members of an institution."""
        stmt = select(func.count(UserRole.id)).where(
            UserRole.institution_id == institution_id,
            UserRole.role == "head",
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def demote_institution_members(self, institution_id: UUID) -> None:
        """Turn every role scoped to an institution into an unscoped individual role."""
        stmt = (
            update(UserRole)
            .where(UserRole.institution_id == institution_id)
            .values(role="individual", institution_id=None, workshop_id=None)
        )
        await self.db.execute(stmt)
