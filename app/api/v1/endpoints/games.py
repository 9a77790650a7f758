"""
Game, sponsorship and game session endpoints.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.core.dependencies import get_current_principal, get_optional_principal
from app.domain.schemas.api_key import ApiKeyStatus, AvailableKey
from app.domain.schemas.game import (
    GameCreate,
    GamePrivateSponsorUpdate,
    GameRead,
    GameSessionCreate,
    GameSessionRead,
    GameSponsorUpdate,
    GameUpdate,
)
from app.repositories.unit_of_work import UnitOfWork, get_unit_of_work
from app.services.api_keys import KeyAvailabilityService, SessionKeyResolver, SponsorshipService
from app.services.auth.authorization import Principal
from app.services.game import GameService

router = APIRouter()


@router.post("", response_model=GameRead, status_code=status.HTTP_201_CREATED)
async def create_game(
    data: GameCreate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> GameRead:
    game = await GameService(uow).create_game(principal, data)
    return GameRead.model_validate(game)


@router.get("", response_model=List[GameRead])
async def list_my_games(
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> List[GameRead]:
    games = await GameService(uow).list_my_games(principal)
    return [GameRead.model_validate(game) for game in games]


@router.get("/sessions/{session_id}", response_model=GameSessionRead)
async def get_game_session(
    session_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> GameSessionRead:
    session = await GameService(uow).get_session(principal, session_id)
    return GameSessionRead.model_validate(session)


@router.get("/{game_id}", response_model=GameRead)
async def get_game(
    game_id: UUID,
    share_token: Optional[str] = Query(None),
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> GameRead:
    game = await GameService(uow).get_game(principal, game_id, share_token)
    return GameRead.model_validate(game)


@router.patch("/{game_id}", response_model=GameRead)
async def update_game(
    game_id: UUID,
    data: GameUpdate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> GameRead:
    game = await GameService(uow).update_game(principal, game_id, data)
    return GameRead.model_validate(game)


@router.delete("/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game(
    game_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> Response:
    await GameService(uow).delete_game(principal, game_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{game_id}/sponsor", response_model=GameRead)
async def set_game_sponsor(
    game_id: UUID,
    data: GameSponsorUpdate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> GameRead:
    """
    Sponsor every play of a public game with a share.

    The share must allow public game sponsoring.
    """
    game = await SponsorshipService(uow).set_game_public_sponsor(principal, game_id, data.share_id)
    return GameRead.model_validate(game)


@router.delete("/{game_id}/sponsor", response_model=GameRead)
async def clear_game_sponsor(
    game_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> GameRead:
    game = await SponsorshipService(uow).clear_game_public_sponsor(principal, game_id)
    return GameRead.model_validate(game)


@router.put("/{game_id}/private-share", response_model=GameRead)
async def set_game_private_sponsor(
    game_id: UUID,
    data: GamePrivateSponsorUpdate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> GameRead:
    """
    Sponsor plays through the game's private share link, optionally limited.
    """
    game = await SponsorshipService(uow).set_game_private_sponsor(
        principal, game_id, data.share_id, data.max_uses
    )
    return GameRead.model_validate(game)


@router.delete("/{game_id}/private-share", response_model=GameRead)
async def revoke_game_private_share(
    game_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> GameRead:
    game = await SponsorshipService(uow).revoke_game_private_share(principal, game_id)
    return GameRead.model_validate(game)


@router.get("/{game_id}/available-keys", response_model=List[AvailableKey])
async def get_available_keys(
    game_id: UUID,
    principal: Optional[Principal] = Depends(get_optional_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> List[AvailableKey]:
    """
    List the keys the caller may use for a game, in priority order.

    Anonymous callers only see the game's sponsors.
    """
    return await KeyAvailabilityService(uow).get_available_keys_for_game(principal, game_id)


@router.get("/{game_id}/api-key-status", response_model=ApiKeyStatus)
async def get_api_key_status(
    game_id: UUID,
    share_token: Optional[str] = Query(None),
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> ApiKeyStatus:
    return await SessionKeyResolver(uow).api_key_status(principal, game_id, share_token)


@router.post("/{game_id}/sessions", response_model=GameSessionRead, status_code=status.HTTP_201_CREATED)
async def create_game_session(
    game_id: UUID,
    data: GameSessionCreate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> GameSessionRead:
    """
    Start a session billed against the resolved API key.
    """
    session = await GameService(uow).create_session(principal, game_id, data)
    return GameSessionRead.model_validate(session)
