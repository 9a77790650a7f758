"""
Game service.
"""
from typing import List, Optional
from uuid import UUID

import structlog

from app.core.exceptions import NoApiKeyError, NotFoundError
from app.domain.schemas.game import GameCreate, GameSessionCreate, GameUpdate
from app.infrastructure.database.models import Game, GameSession, utcnow
from app.repositories.unit_of_work import UnitOfWork
from app.services.api_keys.session_keys import SessionKeyResolver
from app.services.auth.authorization import (
    AuthorizationService,
    PermissionAction,
    Principal,
)

logger = structlog.get_logger(__name__)


class GameService:
    """Games and the sessions played on them."""

    def __init__(
        self,
        uow: UnitOfWork,
        authz: Optional[AuthorizationService] = None,
        resolver: Optional[SessionKeyResolver] = None,
    ):
        self.uow = uow
        self.authz = authz or AuthorizationService(uow)
        self.resolver = resolver or SessionKeyResolver(uow)

    async def create_game(self, principal: Principal, data: GameCreate) -> Game:
        """
        Create a game owned by the principal.

        A game placed in a workshop requires read access to that workshop.
        """
        (await self.authz.can_access_game(principal, PermissionAction.CREATE)).ensure()
        if data.workshop_id is not None:
            result = await self.authz.can_access_workshop(principal, PermissionAction.READ, data.workshop_id)
            result.ensure()

        game = await self.uow.games.create({
            **data.model_dump(),
            "name": data.name.strip(),
            "created_by": principal.id,
        })
        logger.info("game_created", game_id=str(game.id), owner_id=str(principal.id))
        return game

    async def list_my_games(self, principal: Principal) -> List[Game]:
        (await self.authz.can_access_game(principal, PermissionAction.LIST)).ensure()
        return await self.uow.games.list_by_owner(principal.id)

    async def get_game(
        self,
        principal: Principal,
        game_id: UUID,
        share_token: Optional[str] = None,
    ) -> Game:
        result = await self.authz.can_access_game(principal, PermissionAction.READ, game_id, share_token)
        result.ensure()
        return await self.uow.games.get_active(game_id)

    async def update_game(self, principal: Principal, game_id: UUID, data: GameUpdate) -> Game:
        (await self.authz.can_access_game(principal, PermissionAction.UPDATE, game_id)).ensure()
        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("public") is False:
            # A private game cannot keep a public sponsor
            update_data["public_sponsored_api_key_share_id"] = None
        update_data["modified_by"] = principal.id
        return await self.uow.games.update(game_id, update_data)

    async def delete_game(self, principal: Principal, game_id: UUID) -> None:
        """Soft delete a game and revoke its sponsorships."""
        (await self.authz.can_access_game(principal, PermissionAction.DELETE, game_id)).ensure()
        await self.uow.games.update(game_id, {
            "deleted_at": utcnow(),
            "public_sponsored_api_key_share_id": None,
            "private_share_hash": None,
            "private_sponsored_api_key_share_id": None,
            "private_share_remaining": None,
            "modified_by": principal.id,
        })
        logger.info("game_deleted", game_id=str(game_id), deleted_by=str(principal.id))

    async def create_session(
        self,
        principal: Principal,
        game_id: UUID,
        data: GameSessionCreate,
    ) -> GameSession:
        """
        Start a session of a game billed against the resolved API key.

        A private sponsored play counts against the game's remaining plays
        in the same transaction that creates the session.

        Args:
            principal: Player
            game_id: Game ID
            data: Optional workshop context and private share token

        Returns:
            Created session

        Raises:
            NoApiKeyError: If no key can be resolved or the private link ran
                out of plays
        """
        result = await self.authz.can_access_game(
            principal, PermissionAction.READ, game_id, data.share_token
        )
        result.ensure()
        result = await self.authz.can_access_game_session(
            principal,
            PermissionAction.CREATE,
            game_id=game_id,
            workshop_id=data.workshop_id,
        )
        result.ensure()

        resolved = await self.resolver.resolve_api_key_for_session(
            principal, game_id, data.share_token
        )
        system = await self.uow.system_settings.get_current()

        async with self.uow.transaction():
            if resolved.source == "private_sponsor":
                if not await self.uow.games.consume_private_play(game_id):
                    raise NoApiKeyError("The private share link has no plays left")
            session = await self.uow.game_sessions.create({
                "game_id": game_id,
                "user_id": principal.id,
                "workshop_id": data.workshop_id or principal.workshop_id,
                "api_key_id": resolved.api_key_id,
                "ai_platform": resolved.platform,
                "ai_model": system.default_ai_model if system else None,
                "created_by": principal.id,
            })

        logger.info(
            "game_session_created",
            session_id=str(session.id),
            game_id=str(game_id),
            user_id=str(principal.id),
            key_source=resolved.source,
        )
        return session

    async def get_session(self, principal: Principal, session_id: UUID) -> GameSession:
        result = await self.authz.can_access_game_session(principal, PermissionAction.READ, session_id)
        result.ensure()
        session = await self.uow.game_sessions.get(session_id)
        if session is None:
            raise NotFoundError("Game session", session_id)
        return session
