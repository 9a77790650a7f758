"""
Key availability: which credentials a principal may bill a game against.
"""
from typing import List, Optional, Set, Tuple
from uuid import UUID

import structlog

from app.core.exceptions import NotFoundError
from app.domain.schemas.api_key import AvailableKey, KeySource
from app.infrastructure.database.models import ApiKey, ApiKeyShare, Game
from app.repositories.unit_of_work import UnitOfWork
from app.services.auth.authorization import (
    AuthorizationService,
    PermissionAction,
    Principal,
    RoleType,
)

logger = structlog.get_logger(__name__)

Candidate = Tuple[ApiKeyShare, ApiKey, KeySource]


class KeyAvailabilityService:
    """
    Computes the ordered, de-duplicated list of keys usable for a game.

    Order: public sponsor, private sponsor, institution shares, personal
    shares. Participants only ever get their workshop's default key.
    """

    def __init__(self, uow: UnitOfWork, authz: Optional[AuthorizationService] = None):
        self.uow = uow
        self.authz = authz or AuthorizationService(uow)

    async def get_available_keys_for_game(
        self,
        principal: Optional[Principal],
        game_id: UUID,
    ) -> List[AvailableKey]:
        """
        List the keys a principal may use to play a game.

        Args:
            principal: Acting principal, or None for an unauthenticated caller
            game_id: Game ID

        Returns:
            Available keys in priority order

        Raises:
            NotFoundError: If the game does not exist
        """
        game = await self.uow.games.get_active(game_id)
        if game is None:
            raise NotFoundError("Game", game_id)

        if principal is not None and principal.role == RoleType.PARTICIPANT:
            return await self._workshop_default(principal)

        candidates = await self._sponsor_candidates(game)
        if principal is not None:
            if principal.institution_id is not None:
                rows = await self.uow.shares.list_for_institution_with_keys(principal.institution_id)
                candidates.extend((share, key, KeySource.INSTITUTION) for share, key in rows)
            rows = await self.uow.shares.list_for_user_with_keys(principal.id)
            candidates.extend((share, key, KeySource.PERSONAL) for share, key in rows)

        default_share_id = principal.default_api_key_share_id if principal else None
        seen: Set[UUID] = set()
        available: List[AvailableKey] = []
        for share, key, source in candidates:
            if share.id in seen:
                continue
            seen.add(share.id)

            if principal is not None:
                result = await self.authz.can_access_api_key(
                    principal,
                    PermissionAction.READ,
                    key.id,
                    share_id=share.id,
                    game_id=game.id,
                )
                if result.denied:
                    continue

            available.append(AvailableKey(
                share_id=share.id,
                name=key.name,
                platform=key.platform,
                source=source,
                is_default=default_share_id is not None and share.id == default_share_id,
            ))

        logger.debug(
            "available_keys_resolved",
            game_id=str(game_id),
            user_id=str(principal.id) if principal else None,
            count=len(available),
        )
        return available

    async def _workshop_default(self, principal: Principal) -> List[AvailableKey]:
        if principal.workshop_id is None:
            return []
        workshop = await self.uow.workshops.get_active(principal.workshop_id)
        if workshop is None or workshop.default_api_key_share_id is None:
            return []
        row = await self.uow.shares.get_with_key(workshop.default_api_key_share_id)
        if row is None:
            return []
        share, key = row
        return [AvailableKey(
            share_id=share.id,
            name=key.name,
            platform=key.platform,
            source=KeySource.WORKSHOP,
            is_default=True,
        )]

    async def _sponsor_candidates(self, game: Game) -> List[Candidate]:
        candidates: List[Candidate] = []
        public_id = game.public_sponsored_api_key_share_id
        if public_id is not None:
            row = await self.uow.shares.get_with_key(public_id)
            # Honoured only while the owner still allows public sponsoring
            if row is not None and row[0].allow_public_game_sponsoring:
                candidates.append((row[0], row[1], KeySource.SPONSOR))

        private_id = game.private_sponsored_api_key_share_id
        if private_id is not None and private_id != public_id:
            row = await self.uow.shares.get_with_key(private_id)
            if row is not None:
                candidates.append((row[0], row[1], KeySource.SPONSOR))
        return candidates
