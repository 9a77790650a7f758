"""
Institution service.
"""
from typing import List, Optional
from uuid import UUID

import structlog

from app.core.exceptions import ConflictError, NotFoundError
from app.domain.schemas.institution import InstitutionCreate, InstitutionUpdate
from app.domain.schemas.user import UserRoleRead, UserWithRole
from app.infrastructure.database.models import Institution
from app.repositories.unit_of_work import UnitOfWork
from app.services.api_keys.share_store import clear_share_references
from app.services.auth.authorization import (
    AuthorizationService,
    PermissionAction,
    Principal,
    RoleType,
)

logger = structlog.get_logger(__name__)


class InstitutionService:
    """Institution management and membership."""

    def __init__(self, uow: UnitOfWork, authz: Optional[AuthorizationService] = None):
        self.uow = uow
        self.authz = authz or AuthorizationService(uow)

    async def create_institution(self, principal: Principal, data: InstitutionCreate) -> Institution:
        """Create an institution (admin only)."""
        (await self.authz.can_access_institution(principal, PermissionAction.CREATE)).ensure()
        institution = await self.uow.institutions.create({
            "name": data.name.strip(),
            "created_by": principal.id,
        })
        logger.info("institution_created", institution_id=str(institution.id))
        return institution

    async def list_institutions(self, principal: Principal) -> List[Institution]:
        (await self.authz.can_access_institution(principal, PermissionAction.LIST)).ensure()
        return await self.uow.institutions.list_all()

    async def get_institution(self, principal: Principal, institution_id: UUID) -> Institution:
        result = await self.authz.can_access_institution(principal, PermissionAction.READ, institution_id)
        result.ensure()
        return await self.uow.institutions.get(institution_id)

    async def update_institution(
        self,
        principal: Principal,
        institution_id: UUID,
        data: InstitutionUpdate,
    ) -> Institution:
        result = await self.authz.can_access_institution(principal, PermissionAction.UPDATE, institution_id)
        result.ensure()
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        update_data["modified_by"] = principal.id
        return await self.uow.institutions.update(institution_id, update_data)

    async def delete_institution(self, principal: Principal, institution_id: UUID) -> None:
        """
        Delete an institution that no longer has workshops (admin only).

        Members fall back to the individual role; invites and shares that
        target the institution are removed in the same transaction.

        Raises:
            ConflictError: If the institution still has workshops
        """
        (await self.authz.can_access_institution(principal, PermissionAction.DELETE)).ensure()
        institution = await self.uow.institutions.get(institution_id)
        if institution is None:
            raise NotFoundError("Institution", institution_id)
        if await self.uow.workshops.list_ids_by_institution(institution_id):
            raise ConflictError(
                "Delete the institution's workshops first",
                details={"institution_id": str(institution_id)},
            )

        async with self.uow.transaction():
            share_ids = await self.uow.shares.list_ids_targeting_institution(institution_id)
            await clear_share_references(self.uow, share_ids)
            await self.uow.shares.delete_many(share_ids)
            await self.uow.invites.delete_by_institution(institution_id)
            await self.uow.roles.demote_institution_members(institution_id)
            await self.uow.institutions.delete(institution_id)

        logger.info("institution_deleted", institution_id=str(institution_id), deleted_by=str(principal.id))

    async def list_members(self, principal: Principal, institution_id: UUID) -> List[UserWithRole]:
        """List users scoped to the institution or one of its workshops."""
        result = await self.authz.can_access_institution_members(
            principal, PermissionAction.LIST, institution_id
        )
        result.ensure()
        rows = await self.uow.users.list_members(institution_id)
        return [
            UserWithRole(
                id=user.id,
                name=user.name,
                email=user.email,
                default_api_key_share_id=user.default_api_key_share_id,
                created_at=user.created_at,
                role=UserRoleRead.model_validate(role),
            )
            for user, role in rows
        ]

    async def remove_member(self, principal: Principal, institution_id: UUID, member_id: UUID) -> None:
        """
        Remove a member from an institution.

        The member's keys stop being shared with the institution and its
        workshops, and the member is left with the individual role. All
        writes happen in one transaction.

        Args:
            principal: Acting admin or head
            institution_id: Institution ID
            member_id: User to remove

        Raises:
            NotFoundError: If the member does not belong to the institution
            ForbiddenError: If the principal may not remove members or
                tries to remove themselves
            LastHeadError: If the member is the last head
        """
        result = await self.authz.can_access_institution_members(
            principal, PermissionAction.DELETE, institution_id, member_id
        )
        result.ensure()

        async with self.uow.transaction():
            workshop_ids = await self.uow.workshops.list_ids_by_institution(institution_id)
            share_ids = await self.uow.shares.list_ids_for_user_in_scope(
                member_id, institution_id, workshop_ids
            )
            await clear_share_references(self.uow, share_ids)
            await self.uow.shares.delete_many(share_ids)
            await self.uow.roles.replace(
                member_id,
                RoleType.INDIVIDUAL.value,
                created_by=principal.id,
            )

        logger.info(
            "institution_member_removed",
            institution_id=str(institution_id),
            member_id=str(member_id),
            shares_deleted=len(share_ids),
            removed_by=str(principal.id),
        )
