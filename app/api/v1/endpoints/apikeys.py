"""
API key and share endpoints.

Keys are addressed through their shares: every ``{share_id}`` route acts on
the key behind the given share.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from app.core.dependencies import get_current_principal
from app.domain.schemas.api_key import (
    ApiKeyCreate,
    ApiKeyCreated,
    ApiKeyRead,
    ApiKeyShareCreate,
    ApiKeyShareInfo,
    ApiKeyShareRead,
    ApiKeyShareUpdate,
    ApiKeyUpdate,
)
from app.repositories.unit_of_work import UnitOfWork, get_unit_of_work
from app.services.api_keys import DefaultKeyService, ShareStore
from app.services.auth.authorization import Principal

router = APIRouter()


@router.get("", response_model=List[ApiKeyShareRead])
async def list_api_keys(
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> List[ApiKeyShareRead]:
    """
    List every share available to the current user, own keys included.
    """
    return await ShareStore(uow).list_shares_for_principal(principal)


@router.post("/new", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
async def create_api_key(
    data: ApiKeyCreate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> ApiKeyCreated:
    """
    Store a new API key together with its self-share.

    The first key of a user becomes the default automatically.
    """
    return await ShareStore(uow).create_key(principal, data)


@router.get("/{share_id}", response_model=ApiKeyShareInfo)
async def get_api_key_share(
    share_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> ApiKeyShareInfo:
    return await ShareStore(uow).get_share_info(principal, share_id)


@router.patch("/{share_id}", response_model=ApiKeyRead)
async def update_api_key(
    share_id: UUID,
    data: ApiKeyUpdate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> ApiKeyRead:
    return await ShareStore(uow).update_key_name(principal, share_id, data.name)


@router.delete("/{share_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_api_key(
    share_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> Response:
    """
    Delete the key behind a share, with all its shares.
    """
    await ShareStore(uow).delete_key(principal, share_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{share_id}/default", response_model=ApiKeyShareInfo)
async def set_default_api_key(
    share_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> ApiKeyShareInfo:
    """
    Make the key behind a share the current user's default.
    """
    await DefaultKeyService(uow).set_default_api_key(principal, share_id)
    user = await uow.users.get_active(principal.id)
    principal = principal.model_copy(
        update={"default_api_key_share_id": user.default_api_key_share_id}
    )
    return await ShareStore(uow).get_share_info(principal, share_id)


@router.get("/{share_id}/shares", response_model=List[ApiKeyShareRead])
async def list_key_shares(
    share_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> List[ApiKeyShareRead]:
    return await ShareStore(uow).list_shares_for_key(principal, share_id)


@router.post("/{share_id}/shares", response_model=ApiKeyShareRead, status_code=status.HTTP_201_CREATED)
async def share_api_key(
    share_id: UUID,
    data: ApiKeyShareCreate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> ApiKeyShareRead:
    """
    Share the key behind a share with a user, workshop, institution or game.
    """
    return await ShareStore(uow).create_share(principal, share_id, data)


@router.patch("/shares/{share_id}", response_model=ApiKeyShareRead)
async def update_api_key_share(
    share_id: UUID,
    data: ApiKeyShareUpdate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> ApiKeyShareRead:
    return await ShareStore(uow).update_share_allow_public_sponsoring(
        principal, share_id, data.allow_public_game_sponsoring
    )


@router.delete("/shares/{share_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_api_key_share(
    share_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> Response:
    """
    Remove a single share. The key owner and the share's target user may do this.
    """
    await ShareStore(uow).delete_share(principal, share_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
