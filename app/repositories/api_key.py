"""
API key and API key share repositories.
"""
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import ApiKey, ApiKeyShare
from app.repositories.base import BaseRepository


class ApiKeyRepository(BaseRepository[ApiKey]):
    """Repository for provider credentials."""

    def __init__(self, db: AsyncSession):
        super().__init__(ApiKey, db)

    async def list_by_user(self, user_id: UUID) -> List[ApiKey]:
        """
        List keys owned by a user.

        Args:
            user_id: Owner ID

        Returns:
            Keys ordered by creation time
        """
        stmt = (
            select(ApiKey)
            .where(ApiKey.user_id == user_id)
            .order_by(ApiKey.created_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_by_user(self, user_id: UUID) -> int:
        """Count keys owned by a user."""
        stmt = select(func.count(ApiKey.id)).where(ApiKey.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def count_defaults(self, user_id: UUID) -> int:
        """Count keys of a user flagged as default."""
        stmt = select(func.count(ApiKey.id)).where(
            ApiKey.user_id == user_id,
            ApiKey.is_default.is_(True),
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def get_default(self, user_id: UUID) -> Optional[ApiKey]:
        """Get the default key of a user."""
        stmt = select(ApiKey).where(
            ApiKey.user_id == user_id,
            ApiKey.is_default.is_(True),
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def clear_default(self, user_id: UUID) -> None:
        """Unset the default flag on every key of a user."""
        stmt = (
            update(ApiKey)
            .where(ApiKey.user_id == user_id, ApiKey.is_default.is_(True))
            .values(is_default=False)
        )
        await self.db.execute(stmt)

    async def mark_default(self, key_id: UUID) -> None:
        """Flag a key as its owner's default."""
        stmt = update(ApiKey).where(ApiKey.id == key_id).values(is_default=True)
        await self.db.execute(stmt)

    async def get_oldest_self_shared(self, user_id: UUID) -> Optional[Tuple[ApiKey, ApiKeyShare]]:
        """
        Find the owned key whose self-share is the oldest.

        Args:
            user_id: Owner ID

        Returns:
            (key, self_share) or None if the user has no self-shared key
        """
        stmt = (
            select(ApiKey, ApiKeyShare)
            .join(ApiKeyShare, ApiKeyShare.api_key_id == ApiKey.id)
            .where(
                ApiKey.user_id == user_id,
                ApiKeyShare.user_id == user_id,
            )
            .order_by(ApiKeyShare.created_at, ApiKeyShare.id)
            .limit(1)
        )
        result = await self.db.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]


class ApiKeyShareRepository(BaseRepository[ApiKeyShare]):
    """Repository for access grants on API keys."""

    def __init__(self, db: AsyncSession):
        super().__init__(ApiKeyShare, db)

    async def get_with_key(self, share_id: UUID) -> Optional[Tuple[ApiKeyShare, ApiKey]]:
        """
        Get a share together with the key it grants.

        Args:
            share_id: Share ID

        Returns:
            (share, key) or None
        """
        stmt = (
            select(ApiKeyShare, ApiKey)
            .join(ApiKey, ApiKey.id == ApiKeyShare.api_key_id)
            .where(ApiKeyShare.id == share_id)
        )
        result = await self.db.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def get_self_share(self, key_id: UUID) -> Optional[ApiKeyShare]:
        """Get the share targeting the key's own owner."""
        stmt = (
            select(ApiKeyShare)
            .join(ApiKey, ApiKey.id == ApiKeyShare.api_key_id)
            .where(
                ApiKeyShare.api_key_id == key_id,
                ApiKeyShare.user_id == ApiKey.user_id,
            )
            .order_by(ApiKeyShare.created_at)
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_key(self, key_id: UUID) -> List[ApiKeyShare]:
        """List every share of a key, oldest first."""
        stmt = (
            select(ApiKeyShare)
            .where(ApiKeyShare.api_key_id == key_id)
            .order_by(ApiKeyShare.created_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_ids_by_key(self, key_id: UUID) -> List[UUID]:
        """List the IDs of every share of a key."""
        stmt = select(ApiKeyShare.id).where(ApiKeyShare.api_key_id == key_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_for_user_with_keys(self, user_id: UUID) -> List[Tuple[ApiKeyShare, ApiKey]]:
        """
        List shares targeting a user, with their keys.

        Args:
            user_id: Target user ID

        Returns:
            (share, key) pairs, oldest share first
        """
        stmt = (
            select(ApiKeyShare, ApiKey)
            .join(ApiKey, ApiKey.id == ApiKeyShare.api_key_id)
            .where(ApiKeyShare.user_id == user_id)
            .order_by(ApiKeyShare.created_at)
        )
        result = await self.db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def list_for_institution_with_keys(
        self,
        institution_id: UUID,
    ) -> List[Tuple[ApiKeyShare, ApiKey]]:
        """List shares targeting an institution, with their keys."""
        stmt = (
            select(ApiKeyShare, ApiKey)
            .join(ApiKey, ApiKey.id == ApiKeyShare.api_key_id)
            .where(ApiKeyShare.institution_id == institution_id)
            .order_by(ApiKeyShare.created_at)
        )
        result = await self.db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def list_for_workshop_with_keys(
        self,
        workshop_id: UUID,
    ) -> List[Tuple[ApiKeyShare, ApiKey]]:
        """List shares targeting a workshop, with their keys."""
        stmt = (
            select(ApiKeyShare, ApiKey)
            .join(ApiKey, ApiKey.id == ApiKeyShare.api_key_id)
            .where(ApiKeyShare.workshop_id == workshop_id)
            .order_by(ApiKeyShare.created_at)
        )
        result = await self.db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def find_for_target(
        self,
        key_id: UUID,
        *,
        user_id: Optional[UUID] = None,
        workshop_id: Optional[UUID] = None,
        institution_id: Optional[UUID] = None,
        game_id: Optional[UUID] = None,
    ) -> Optional[ApiKeyShare]:
        """
        Find an existing share of a key to exactly one target.

        Args:
            key_id: Key ID
            user_id: Target user
            workshop_id: Target workshop
            institution_id: Target institution
            game_id: Target game

        Returns:
            The share if one exists
        """
        stmt = select(ApiKeyShare).where(
            ApiKeyShare.api_key_id == key_id,
            ApiKeyShare.user_id == user_id if user_id else ApiKeyShare.user_id.is_(None),
            ApiKeyShare.workshop_id == workshop_id if workshop_id else ApiKeyShare.workshop_id.is_(None),
            ApiKeyShare.institution_id == institution_id
            if institution_id else ApiKeyShare.institution_id.is_(None),
            ApiKeyShare.game_id == game_id if game_id else ApiKeyShare.game_id.is_(None),
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def has_direct_match(
        self,
        key_id: UUID,
        user_id: UUID,
        workshop_id: Optional[UUID],
        institution_id: Optional[UUID],
    ) -> bool:
        """
        Check whether a key is shared with a user or the user's role scope.

        Args:
            key_id: Key ID
            user_id: Principal ID
            workshop_id: Principal's workshop scope
            institution_id: Principal's institution scope

        Returns:
            True if some share on the key matches
        """
        conditions = [ApiKeyShare.user_id == user_id]
        if workshop_id is not None:
            conditions.append(ApiKeyShare.workshop_id == workshop_id)
        if institution_id is not None:
            conditions.append(ApiKeyShare.institution_id == institution_id)

        stmt = (
            select(func.count(ApiKeyShare.id))
            .where(ApiKeyShare.api_key_id == key_id, or_(*conditions))
        )
        result = await self.db.execute(stmt)
        return (result.scalar() or 0) > 0

    async def has_workshop_sponsoring_share(self, key_id: UUID, workshop_id: UUID) -> bool:
        """Check whether a key is shared with a workshop for public game sponsoring."""
        stmt = select(func.count(ApiKeyShare.id)).where(
            and_(
                ApiKeyShare.api_key_id == key_id,
                ApiKeyShare.workshop_id == workshop_id,
                ApiKeyShare.allow_public_game_sponsoring.is_(True),
            )
        )
        result = await self.db.execute(stmt)
        return (result.scalar() or 0) > 0

    async def list_ids_for_user_in_scope(
        self,
        user_id: UUID,
        institution_id: UUID,
        workshop_ids: Sequence[UUID],
    ) -> List[UUID]:
        """List shares of a user's keys that target an institution or its workshops."""
        scope = [ApiKeyShare.institution_id == institution_id]
        if workshop_ids:
            scope.append(ApiKeyShare.workshop_id.in_(workshop_ids))
        stmt = (
            select(ApiKeyShare.id)
            .join(ApiKey, ApiKey.id == ApiKeyShare.api_key_id)
            .where(ApiKey.user_id == user_id, or_(*scope))
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def delete_many(self, share_ids: Sequence[UUID]) -> None:
        """Delete shares by ID."""
        if not share_ids:
            return
        await self.db.execute(delete(ApiKeyShare).where(ApiKeyShare.id.in_(share_ids)))

    async def list_ids_targeting_institution(self, institution_id: UUID) -> List[UUID]:
        """List shares whose target is the given institution."""
        stmt = select(ApiKeyShare.id).where(ApiKeyShare.institution_id == institution_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
