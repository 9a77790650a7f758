"""
Scope-level keys: workshop defaults and institution / system free-use keys.
"""
from typing import Optional, Tuple
from uuid import UUID

import structlog

from app.core.exceptions import ForbiddenError, NotFoundError
from app.infrastructure.database.models import (
    ApiKey,
    ApiKeyShare,
    Institution,
    SystemSettings,
    Workshop,
)
from app.repositories.unit_of_work import UnitOfWork
from app.services.auth.authorization import (
    AuthorizationService,
    PermissionAction,
    Principal,
)

logger = structlog.get_logger(__name__)


class ScopeKeyService:
    """Configures the keys shared by every member of a scope."""

    def __init__(self, uow: UnitOfWork, authz: Optional[AuthorizationService] = None):
        self.uow = uow
        self.authz = authz or AuthorizationService(uow)

    async def _get_share_with_key(self, share_id: UUID) -> Tuple[ApiKeyShare, ApiKey]:
        row = await self.uow.shares.get_with_key(share_id)
        if row is None:
            raise NotFoundError("API key share", share_id)
        return row

    async def set_workshop_default_api_key(
        self,
        principal: Principal,
        workshop_id: UUID,
        share_id: Optional[UUID],
    ) -> Workshop:
        """
        Set or clear the key participants of a workshop play with.

        Args:
            principal: Acting principal, needs update rights on the workshop
            workshop_id: Workshop ID
            share_id: Share to use, None to clear

        Returns:
            The updated workshop
        """
        (await self.authz.can_access_workshop(principal, PermissionAction.UPDATE, workshop_id)).ensure()
        if share_id is not None:
            share, key = await self._get_share_with_key(share_id)
            if not principal.is_admin and share.workshop_id != workshop_id and key.user_id != principal.id:
                raise ForbiddenError("The share must target this workshop or grant a key you own")

        workshop = await self.uow.workshops.update(workshop_id, {
            "default_api_key_share_id": share_id,
            "modified_by": principal.id,
        })
        logger.info(
            "workshop_default_api_key_set",
            workshop_id=str(workshop_id),
            share_id=str(share_id) if share_id else None,
        )
        return workshop

    async def set_institution_free_use_api_key(
        self,
        principal: Principal,
        institution_id: UUID,
        share_id: Optional[UUID],
    ) -> Institution:
        """
        Set or clear the key every member of an institution may use.

        Args:
            principal: Acting principal, needs update rights on the institution
            institution_id: Institution ID
            share_id: Share to use, None to clear

        Returns:
            The updated institution
        """
        result = await self.authz.can_access_institution(
            principal, PermissionAction.UPDATE, institution_id
        )
        result.ensure()
        if share_id is not None:
            share, key = await self._get_share_with_key(share_id)
            if (
                not principal.is_admin
                and share.institution_id != institution_id
                and key.user_id != principal.id
            ):
                raise ForbiddenError("The share must target this institution or grant a key you own")

        institution = await self.uow.institutions.update(institution_id, {
            "free_use_api_key_share_id": share_id,
            "modified_by": principal.id,
        })
        logger.info(
            "institution_free_use_key_set",
            institution_id=str(institution_id),
            share_id=str(share_id) if share_id else None,
        )
        return institution

    async def set_system_free_use_api_key(
        self,
        principal: Principal,
        key_id: Optional[UUID],
    ) -> SystemSettings:
        """Set or clear the platform-wide free-use key (admin only)."""
        if not principal.is_admin:
            raise ForbiddenError("Only admins can change system settings")
        if key_id is not None and await self.uow.api_keys.get(key_id) is None:
            raise NotFoundError("API key", key_id)

        system = await self.uow.system_settings.get_or_create()
        system = await self.uow.system_settings.update(system.id, {
            "free_use_api_key_id": key_id,
            "modified_by": principal.id,
        })
        logger.info("system_free_use_key_set", key_id=str(key_id) if key_id else None)
        return system
