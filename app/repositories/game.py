"""
Game and game session repositories.
"""
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import Game, GameSession
from app.repositories.base import BaseRepository


class GameRepository(BaseRepository[Game]):
    """Game repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(Game, db)

    async def get_active(self, game_id: UUID) -> Optional[Game]:
        """Get a game that has not been soft deleted."""
        stmt = select(Game).where(Game.id == game_id, Game.deleted_at.is_(None))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_private_share_hash(self, share_hash: str) -> Optional[Game]:
        """Get a game by its private share token."""
        stmt = select(Game).where(
            Game.private_share_hash == share_hash,
            Game.deleted_at.is_(None),
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_owner(self, user_id: UUID) -> List[Game]:
        """List games created by a user, newest first."""
        stmt = (
            select(Game)
            .where(Game.created_by == user_id, Game.deleted_at.is_(None))
            .order_by(Game.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def consume_private_play(self, game_id: UUID) -> bool:
        """
        Count one sponsored play against a private share link.

        Unlimited links keep a NULL counter and always succeed.

        Returns:
            False if a limited link has no plays left
        """
        stmt = (
            update(Game)
            .where(
                Game.id == game_id,
                or_(Game.private_share_remaining.is_(None), Game.private_share_remaining > 0),
            )
            .values(private_share_remaining=Game.private_share_remaining - 1)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def clear_sponsor_refs(self, share_ids: Sequence[UUID]) -> None:
        """
        Remove sponsorships that reference any of the given shares.

        A public sponsorship is simply cleared. A private share link cannot
        work without its sponsor, so it is revoked entirely.

        Args:
            share_ids: Shares being deleted
        """
        if not share_ids:
            return
        await self.db.execute(
            update(Game)
            .where(Game.public_sponsored_api_key_share_id.in_(share_ids))
            .values(public_sponsored_api_key_share_id=None)
        )
        await self.db.execute(
            update(Game)
            .where(Game.private_sponsored_api_key_share_id.in_(share_ids))
            .values(
                private_sponsored_api_key_share_id=None,
                private_share_hash=None,
                private_share_remaining=None,
            )
        )


class GameSessionRepository(BaseRepository[GameSession]):
    """Game session repository."""

    def __init__(self, db: AsyncSession):
        super().__init__(GameSession, db)

    async def clear_api_key(self, key_id: UUID) -> None:
        """Detach sessions from a key that is being deleted."""
        stmt = (
            update(GameSession)
            .where(GameSession.api_key_id == key_id)
            .values(api_key_id=None)
        )
        await self.db.execute(stmt)

    async def list_by_user(self, user_id: UUID) -> List[GameSession]:
        """List sessions of a user, newest first."""
        stmt = (
            select(GameSession)
            .where(GameSession.user_id == user_id)
            .order_by(GameSession.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
