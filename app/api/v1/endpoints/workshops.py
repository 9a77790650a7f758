"""
Workshop endpoints.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.core.dependencies import get_current_principal
from app.domain.schemas.institution import (
    ScopeKeyUpdate,
    WorkshopCreate,
    WorkshopRead,
    WorkshopUpdate,
)
from app.domain.schemas.invite import InviteRead, WorkshopInviteCreate
from app.domain.schemas.user import UserWithRole
from app.repositories.unit_of_work import UnitOfWork, get_unit_of_work
from app.services.api_keys import ScopeKeyService
from app.services.auth.authorization import Principal
from app.services.invite import InviteService
from app.services.workshop import WorkshopService

router = APIRouter()


@router.post("", response_model=WorkshopRead, status_code=status.HTTP_201_CREATED)
async def create_workshop(
    data: WorkshopCreate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> WorkshopRead:
    workshop = await WorkshopService(uow).create_workshop(principal, data)
    return WorkshopRead.model_validate(workshop)


@router.get("", response_model=List[WorkshopRead])
async def list_workshops(
    institution_id: UUID = Query(...),
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> List[WorkshopRead]:
    workshops = await WorkshopService(uow).list_workshops(principal, institution_id)
    return [WorkshopRead.model_validate(w) for w in workshops]


@router.get("/{workshop_id}", response_model=WorkshopRead)
async def get_workshop(
    workshop_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> WorkshopRead:
    workshop = await WorkshopService(uow).get_workshop(principal, workshop_id)
    return WorkshopRead.model_validate(workshop)


@router.patch("/{workshop_id}", response_model=WorkshopRead)
async def update_workshop(
    workshop_id: UUID,
    data: WorkshopUpdate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> WorkshopRead:
    workshop = await WorkshopService(uow).update_workshop(principal, workshop_id, data)
    return WorkshopRead.model_validate(workshop)


@router.delete("/{workshop_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workshop(
    workshop_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> Response:
    await WorkshopService(uow).delete_workshop(principal, workshop_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{workshop_id}/members", response_model=List[UserWithRole])
async def list_workshop_members(
    workshop_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> List[UserWithRole]:
    return await WorkshopService(uow).list_members(principal, workshop_id)


@router.put("/{workshop_id}/default-key", response_model=WorkshopRead)
async def set_workshop_default_key(
    workshop_id: UUID,
    data: ScopeKeyUpdate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> WorkshopRead:
    """
    Set or clear the key the workshop's participants play with.
    """
    workshop = await ScopeKeyService(uow).set_workshop_default_api_key(
        principal, workshop_id, data.share_id
    )
    return WorkshopRead.model_validate(workshop)


@router.post("/{workshop_id}/invites", response_model=InviteRead, status_code=status.HTTP_201_CREATED)
async def create_workshop_invite(
    workshop_id: UUID,
    data: WorkshopInviteCreate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> InviteRead:
    invite = await InviteService(uow).create_workshop_invite(principal, workshop_id, data)
    return InviteRead.model_validate(invite)
