"""
Institution endpoints.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from app.core.dependencies import get_current_principal
from app.domain.schemas.institution import (
    InstitutionCreate,
    InstitutionRead,
    InstitutionUpdate,
    ScopeKeyUpdate,
)
from app.domain.schemas.invite import InstitutionInviteCreate, InviteRead
from app.domain.schemas.user import UserWithRole
from app.repositories.unit_of_work import UnitOfWork, get_unit_of_work
from app.services.api_keys import ScopeKeyService
from app.services.auth.authorization import Principal
from app.services.institution import InstitutionService
from app.services.invite import InviteService

router = APIRouter()


@router.post("", response_model=InstitutionRead, status_code=status.HTTP_201_CREATED)
async def create_institution(
    data: InstitutionCreate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> InstitutionRead:
    institution = await InstitutionService(uow).create_institution(principal, data)
    return InstitutionRead.model_validate(institution)


@router.get("", response_model=List[InstitutionRead])
async def list_institutions(
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> List[InstitutionRead]:
    institutions = await InstitutionService(uow).list_institutions(principal)
    return [InstitutionRead.model_validate(i) for i in institutions]


@router.get("/{institution_id}", response_model=InstitutionRead)
async def get_institution(
    institution_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> InstitutionRead:
    institution = await InstitutionService(uow).get_institution(principal, institution_id)
    return InstitutionRead.model_validate(institution)


@router.patch("/{institution_id}", response_model=InstitutionRead)
async def update_institution(
    institution_id: UUID,
    data: InstitutionUpdate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> InstitutionRead:
    institution = await InstitutionService(uow).update_institution(principal, institution_id, data)
    return InstitutionRead.model_validate(institution)


@router.delete("/{institution_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_institution(
    institution_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> Response:
    await InstitutionService(uow).delete_institution(principal, institution_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{institution_id}/members", response_model=List[UserWithRole])
async def list_institution_members(
    institution_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> List[UserWithRole]:
    return await InstitutionService(uow).list_members(principal, institution_id)


@router.delete("/{institution_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_institution_member(
    institution_id: UUID,
    member_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> Response:
    """
    Remove a member; their keys stop being shared with the institution.
    """
    await InstitutionService(uow).remove_member(principal, institution_id, member_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{institution_id}/free-use-key", response_model=InstitutionRead)
async def set_institution_free_use_key(
    institution_id: UUID,
    data: ScopeKeyUpdate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> InstitutionRead:
    institution = await ScopeKeyService(uow).set_institution_free_use_api_key(
        principal, institution_id, data.share_id
    )
    return InstitutionRead.model_validate(institution)


@router.get("/{institution_id}/invites", response_model=List[InviteRead])
async def list_institution_invites(
    institution_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> List[InviteRead]:
    invites = await InviteService(uow).list_institution_invites(principal, institution_id)
    return [InviteRead.model_validate(invite) for invite in invites]


@router.post("/{institution_id}/invites", response_model=InviteRead, status_code=status.HTTP_201_CREATED)
async def create_institution_invite(
    institution_id: UUID,
    data: InstitutionInviteCreate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> InviteRead:
    """
    Invite a user into the institution as head or staff.
    """
    invite = await InviteService(uow).create_institution_invite(principal, institution_id, data)
    return InviteRead.model_validate(invite)
