"""
Invite endpoints.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from app.core.dependencies import get_current_principal
from app.domain.schemas.invite import InviteRead
from app.domain.schemas.user import UserRoleRead
from app.repositories.unit_of_work import UnitOfWork, get_unit_of_work
from app.services.auth.authorization import Principal
from app.services.invite import InviteService

router = APIRouter()


@router.get("/me", response_model=List[InviteRead])
async def list_my_invites(
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> List[InviteRead]:
    invites = await InviteService(uow).list_my_invites(principal)
    return [InviteRead.model_validate(invite) for invite in invites]


@router.post("/token/{token}/accept", response_model=UserRoleRead)
async def accept_invite_by_token(
    token: str,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> UserRoleRead:
    """
    Join a workshop with an open invite token.
    """
    role = await InviteService(uow).accept_invite_by_token(principal, token)
    return UserRoleRead.model_validate(role)


@router.get("/{invite_id}", response_model=InviteRead)
async def get_invite(
    invite_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> InviteRead:
    invite = await InviteService(uow).get_invite(principal, invite_id)
    return InviteRead.model_validate(invite)


@router.post("/{invite_id}/accept", response_model=UserRoleRead)
async def accept_invite(
    invite_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> UserRoleRead:
    """
    Accept a targeted invite. The current role is replaced.
    """
    role = await InviteService(uow).accept_invite(principal, invite_id)
    return UserRoleRead.model_validate(role)


@router.post("/{invite_id}/decline", response_model=InviteRead)
async def decline_invite(
    invite_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> InviteRead:
    invite = await InviteService(uow).decline_invite(principal, invite_id)
    return InviteRead.model_validate(invite)


@router.delete("/{invite_id}", response_model=InviteRead)
async def revoke_invite(
    invite_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> InviteRead:
    invite = await InviteService(uow).revoke_invite(principal, invite_id)
    return InviteRead.model_validate(invite)
