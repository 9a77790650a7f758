"""
User endpoints.
"""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from app.core.dependencies import get_current_principal
from app.domain.schemas.user import (
    UserCreate,
    UserRead,
    UserRoleRead,
    UserRoleUpdate,
    UserUpdate,
    UserWithRole,
)
from app.repositories.unit_of_work import UnitOfWork, get_unit_of_work
from app.services.auth.authorization import Principal
from app.services.user import UserService

router = APIRouter()


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_create: UserCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> UserRead:
    """
    Register a user. New users start with the individual role.
    """
    user = await UserService(uow).create(user_create)
    return UserRead.model_validate(user)


@router.get("/me", response_model=UserWithRole)
async def get_current_user_info(
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> UserWithRole:
    return await UserService(uow).get(principal, principal.id)


@router.get("", response_model=List[UserWithRole])
async def list_users(
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> List[UserWithRole]:
    return await UserService(uow).list_users(principal)


@router.get("/{user_id}", response_model=UserWithRole)
async def get_user(
    user_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> UserWithRole:
    return await UserService(uow).get(principal, user_id)


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: UUID,
    user_update: UserUpdate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> UserRead:
    user = await UserService(uow).update(principal, user_id, user_update)
    return UserRead.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> Response:
    await UserService(uow).delete(principal, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{user_id}/role", response_model=UserRoleRead)
async def set_user_role(
    user_id: UUID,
    data: UserRoleUpdate,
    principal: Principal = Depends(get_current_principal),
    uow: UnitOfWork = Depends(get_unit_of_work),
) -> UserRoleRead:
    """
    Assign a role directly. Admin only.
    """
    return await UserService(uow).set_role(principal, user_id, data)
