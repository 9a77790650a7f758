"""
Resolution of the API key a new game session bills against.
"""
from typing import Awaitable, Callable, List, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from app.core.exceptions import NoApiKeyError, NotFoundError
from app.domain.schemas.api_key import ApiKeyStatus
from app.infrastructure.database.models import Game
from app.repositories.unit_of_work import UnitOfWork
from app.services.auth.authorization import Principal, RoleType

logger = structlog.get_logger(__name__)


class ResolvedApiKey(BaseModel):
    """The key chosen for a session."""
    api_key_id: UUID
    share_id: Optional[UUID] = None
    platform: str
    source: str


class SessionKeyResolver:
    """
    Picks one key for a new session.

    Priority: workshop default, honoured public sponsor, private sponsor,
    institution free-use, system free-use, the principal's default key.
    Participants are limited to their workshop's default key.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def resolve_api_key_for_session(
        self,
        principal: Principal,
        game_id: UUID,
        share_token: Optional[str] = None,
    ) -> ResolvedApiKey:
        """
        Resolve the key for a session of a game.

        The private sponsor only pays for players who present the game's
        private share token.

        Args:
            principal: Player
            game_id: Game ID
            share_token: Private share token presented by the player

        Returns:
            The resolved key

        Raises:
            NotFoundError: If the game does not exist
            NoApiKeyError: If no key is available
        """
        game = await self.uow.games.get_active(game_id)
        if game is None:
            raise NotFoundError("Game", game_id)

        resolvers: List[Callable[[], Awaitable[Optional[ResolvedApiKey]]]] = [
            lambda: self._workshop_key(principal),
        ]
        if principal.role != RoleType.PARTICIPANT:
            resolvers += [
                lambda: self._public_sponsor_key(game),
                lambda: self._private_sponsor_key(game, share_token),
                lambda: self._institution_free_use_key(principal),
                self._system_free_use_key,
                lambda: self._user_default_key(principal),
            ]

        for resolve in resolvers:
            resolved = await resolve()
            if resolved is not None:
                logger.debug(
                    "session_api_key_resolved",
                    user_id=str(principal.id),
                    game_id=str(game_id),
                    source=resolved.source,
                    platform=resolved.platform,
                )
                return resolved

        logger.debug("no_api_key_available", user_id=str(principal.id), game_id=str(game_id))
        raise NoApiKeyError()

    async def api_key_status(
        self,
        principal: Principal,
        game_id: UUID,
        share_token: Optional[str] = None,
    ) -> ApiKeyStatus:
        """Report whether a session could be started and which source would pay."""
        try:
            resolved = await self.resolve_api_key_for_session(principal, game_id, share_token)
        except NoApiKeyError:
            return ApiKeyStatus(available=False)
        return ApiKeyStatus(available=True, source=resolved.source)

    async def is_api_key_available(
        self,
        principal: Principal,
        game_id: UUID,
        share_token: Optional[str] = None,
    ) -> bool:
        """Check whether any key is available for a session of the game."""
        return (await self.api_key_status(principal, game_id, share_token)).available

    async def _from_share(self, share_id: Optional[UUID], source: str) -> Optional[ResolvedApiKey]:
        if share_id is None:
            return None
        row = await self.uow.shares.get_with_key(share_id)
        if row is None:
            logger.warning("api_key_share_not_accessible", share_id=str(share_id), source=source)
            return None
        share, key = row
        return ResolvedApiKey(api_key_id=key.id, share_id=share.id, platform=key.platform, source=source)

    async def _workshop_key(self, principal: Principal) -> Optional[ResolvedApiKey]:
        if principal.workshop_id is None:
            return None
        workshop = await self.uow.workshops.get_active(principal.workshop_id)
        if workshop is None:
            return None
        return await self._from_share(workshop.default_api_key_share_id, "workshop")

    async def _public_sponsor_key(self, game: Game) -> Optional[ResolvedApiKey]:
        if game.public_sponsored_api_key_share_id is None:
            return None
        share = await self.uow.shares.get(game.public_sponsored_api_key_share_id)
        if share is None or not share.allow_public_game_sponsoring:
            return None
        return await self._from_share(share.id, "sponsor")

    async def _private_sponsor_key(self, game: Game, share_token: Optional[str]) -> Optional[ResolvedApiKey]:
        if not share_token or share_token != game.private_share_hash:
            return None
        if game.private_share_remaining is not None and game.private_share_remaining <= 0:
            return None
        return await self._from_share(game.private_sponsored_api_key_share_id, "private_sponsor")

    async def _institution_free_use_key(self, principal: Principal) -> Optional[ResolvedApiKey]:
        if principal.institution_id is None:
            return None
        institution = await self.uow.institutions.get(principal.institution_id)
        if institution is None:
            return None
        return await self._from_share(institution.free_use_api_key_share_id, "institution")

    async def _system_free_use_key(self) -> Optional[ResolvedApiKey]:
        system = await self.uow.system_settings.get_current()
        if system is None or system.free_use_api_key_id is None:
            return None
        key = await self.uow.api_keys.get(system.free_use_api_key_id)
        if key is None:
            logger.warning("system_free_use_key_not_found", api_key_id=str(system.free_use_api_key_id))
            return None
        return ResolvedApiKey(api_key_id=key.id, platform=key.platform, source="system")

    async def _user_default_key(self, principal: Principal) -> Optional[ResolvedApiKey]:
        key = await self.uow.api_keys.get_default(principal.id)
        if key is None:
            return None
        self_share = await self.uow.shares.get_self_share(key.id)
        if self_share is None:
            logger.warning("default_key_self_share_not_found", key_id=str(key.id))
            return None
        return ResolvedApiKey(
            api_key_id=key.id,
            share_id=self_share.id,
            platform=key.platform,
            source="personal",
        )
