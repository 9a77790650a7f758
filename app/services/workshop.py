"""
Workshop service.
"""
from typing import List, Optional
from uuid import UUID

import structlog

from app.core.exceptions import NotFoundError
from app.domain.schemas.institution import WorkshopCreate, WorkshopUpdate
from app.domain.schemas.user import UserRoleRead, UserWithRole
from app.infrastructure.database.models import Workshop, utcnow
from app.repositories.unit_of_work import UnitOfWork
from app.services.auth.authorization import (
    AuthorizationService,
    PermissionAction,
    Principal,
)

logger = structlog.get_logger(__name__)


class WorkshopService:
    """Workshops inside an institution."""

    def __init__(self, uow: UnitOfWork, authz: Optional[AuthorizationService] = None):
        self.uow = uow
        self.authz = authz or AuthorizationService(uow)

    async def create_workshop(self, principal: Principal, data: WorkshopCreate) -> Workshop:
        """
        Create a workshop.

        Args:
            principal: Admin, or head / staff of the institution
            data: Workshop data

        Returns:
            Created workshop
        """
        result = await self.authz.can_access_workshop(
            principal, PermissionAction.CREATE, institution_id=data.institution_id
        )
        result.ensure()
        if await self.uow.institutions.get(data.institution_id) is None:
            raise NotFoundError("Institution", data.institution_id)

        workshop = await self.uow.workshops.create({
            **data.model_dump(),
            "name": data.name.strip(),
            "created_by": principal.id,
        })
        logger.info(
            "workshop_created",
            workshop_id=str(workshop.id),
            institution_id=str(data.institution_id),
        )
        return workshop

    async def list_workshops(self, principal: Principal, institution_id: UUID) -> List[Workshop]:
        result = await self.authz.can_access_workshop(
            principal, PermissionAction.LIST, institution_id=institution_id
        )
        result.ensure()
        return await self.uow.workshops.list_by_institution(institution_id)

    async def get_workshop(self, principal: Principal, workshop_id: UUID) -> Workshop:
        (await self.authz.can_access_workshop(principal, PermissionAction.READ, workshop_id)).ensure()
        return await self.uow.workshops.get_active(workshop_id)

    async def update_workshop(
        self,
        principal: Principal,
        workshop_id: UUID,
        data: WorkshopUpdate,
    ) -> Workshop:
        (await self.authz.can_access_workshop(principal, PermissionAction.UPDATE, workshop_id)).ensure()
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        update_data["modified_by"] = principal.id
        return await self.uow.workshops.update(workshop_id, update_data)

    async def delete_workshop(self, principal: Principal, workshop_id: UUID) -> None:
        """Soft delete a workshop."""
        (await self.authz.can_access_workshop(principal, PermissionAction.DELETE, workshop_id)).ensure()
        await self.uow.workshops.update(workshop_id, {
            "deleted_at": utcnow(),
            "active": False,
            "modified_by": principal.id,
        })
        logger.info("workshop_deleted", workshop_id=str(workshop_id), deleted_by=str(principal.id))

    async def list_members(self, principal: Principal, workshop_id: UUID) -> List[UserWithRole]:
        result = await self.authz.can_access_workshop_members(principal, PermissionAction.LIST, workshop_id)
        result.ensure()
        return [
            UserWithRole(
                id=user.id,
                name=user.name,
                email=user.email,
                default_api_key_share_id=user.default_api_key_share_id,
                created_at=user.created_at,
                role=UserRoleRead.model_validate(role),
            )
            for user, role in await self.uow.users.list_workshop_members(workshop_id)
        ]
