"""
Game sponsorship: pointing a game at a share that pays for its plays.
"""
from typing import Optional
from uuid import UUID

import structlog

from app.core.exceptions import NotFoundError, ValidationError
from app.core.security import generate_private_share_token
from app.infrastructure.database.models import ApiKey, ApiKeyShare, Game
from app.repositories.unit_of_work import UnitOfWork
from app.services.auth.authorization import (
    AuthorizationService,
    PermissionAction,
    Principal,
)

logger = structlog.get_logger(__name__)


class SponsorshipService:
    """Sets and clears public and private game sponsorships."""

    def __init__(self, uow: UnitOfWork, authz: Optional[AuthorizationService] = None):
        self.uow = uow
        self.authz = authz or AuthorizationService(uow)

    async def set_game_public_sponsor(self, principal: Principal, game_id: UUID, share_id: UUID) -> Game:
        """
        Let a share pay for every play of a public game.

        Args:
            principal: Acting principal, needs update rights on the game
            game_id: Game ID
            share_id: Sponsoring share

        Returns:
            The updated game

        Raises:
            ValidationError: If the game is not public or the share does not
                allow public sponsoring
        """
        game = await self._get_game_for_update(principal, game_id)
        if not game.public:
            raise ValidationError("Only public games can be sponsored", field="game_id")

        share, _ = await self._get_readable_share(principal, share_id, game)
        if not share.allow_public_game_sponsoring:
            raise ValidationError(
                "This API key share does not allow public game sponsoring",
                field="share_id",
            )

        game = await self.uow.games.update(game.id, {
            "public_sponsored_api_key_share_id": share.id,
            "modified_by": principal.id,
        })
        logger.info("game_public_sponsor_set", game_id=str(game_id), share_id=str(share_id))
        return game

    async def clear_game_public_sponsor(self, principal: Principal, game_id: UUID) -> Game:
        """Remove the public sponsorship of a game."""
        game = await self._get_game_for_update(principal, game_id)
        game = await self.uow.games.update(game.id, {
            "public_sponsored_api_key_share_id": None,
            "modified_by": principal.id,
        })
        logger.info("game_public_sponsor_cleared", game_id=str(game_id))
        return game

    async def set_game_private_sponsor(
        self,
        principal: Principal,
        game_id: UUID,
        share_id: UUID,
        max_uses: Optional[int] = None,
    ) -> Game:
        """
        Sponsor plays through the game's private share link.

        A share token is generated if the game has none yet.

        Args:
            principal: Acting principal, needs update rights on the game
            game_id: Game ID
            share_id: Sponsoring share
            max_uses: Number of sponsored plays, unlimited if None

        Returns:
            The updated game
        """
        if max_uses is not None and max_uses < 1:
            raise ValidationError("max_uses must be positive", field="max_uses")

        game = await self._get_game_for_update(principal, game_id)
        share, _ = await self._get_readable_share(principal, share_id, game)

        token = game.private_share_hash or generate_private_share_token()
        game = await self.uow.games.update(game.id, {
            "private_share_hash": token,
            "private_sponsored_api_key_share_id": share.id,
            "private_share_remaining": max_uses,
            "modified_by": principal.id,
        })
        logger.info(
            "game_private_sponsor_set",
            game_id=str(game_id),
            share_id=str(share_id),
            max_uses=max_uses,
        )
        return game

    async def revoke_game_private_share(self, principal: Principal, game_id: UUID) -> Game:
        """Revoke the private share link together with its sponsorship."""
        game = await self._get_game_for_update(principal, game_id)
        game = await self.uow.games.update(game.id, {
            "private_share_hash": None,
            "private_sponsored_api_key_share_id": None,
            "private_share_remaining": None,
            "modified_by": principal.id,
        })
        logger.info("game_private_share_revoked", game_id=str(game_id))
        return game

    async def _get_game_for_update(self, principal: Principal, game_id: UUID) -> Game:
        (await self.authz.can_access_game(principal, PermissionAction.UPDATE, game_id)).ensure()
        return await self.uow.games.get_active(game_id)

    async def _get_readable_share(
        self,
        principal: Principal,
        share_id: UUID,
        game: Game,
    ) -> tuple[ApiKeyShare, ApiKey]:
        row = await self.uow.shares.get_with_key(share_id)
        if row is None:
            raise NotFoundError("API key share", share_id)
        share, key = row
        result = await self.authz.can_access_api_key(
            principal,
            PermissionAction.READ,
            key.id,
            workshop_id=game.workshop_id,
        )
        result.ensure()
        return share, key
