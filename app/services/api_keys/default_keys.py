"""
Default API key lifecycle.

Every user holds at most one default key, and exactly one as soon as they
own any key. The default is mirrored on the user row as a pointer to the
key's self-share.
"""
from typing import Optional
from uuid import UUID

import structlog

from app.core.exceptions import NotFoundError
from app.services.auth.authorization import (
    AuthorizationService,
    PermissionAction,
    Principal,
)
from app.repositories.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)


class DefaultKeyService:
    """Maintains the one-default-key-per-user invariant."""

    def __init__(self, uow: UnitOfWork, authz: Optional[AuthorizationService] = None):
        self.uow = uow
        self.authz = authz or AuthorizationService(uow)

    async def set_default_api_key(self, principal: Principal, share_id: UUID) -> UUID:
        """
        Make the key behind a share the principal's default.

        Clearing the old default and setting the new one happen in one
        transaction.

        Args:
            principal: Acting principal, must own the key
            share_id: Any share of the key

        Returns:
            ID of the new default key

        Raises:
            NotFoundError: If the share does not exist
            ForbiddenError: If the principal does not own the key
        """
        row = await self.uow.shares.get_with_key(share_id)
        if row is None:
            raise NotFoundError("API key share", share_id)
        share, key = row

        result = await self.authz.can_access_api_key(principal, PermissionAction.UPDATE, key.id)
        result.ensure()

        self_share = await self.uow.shares.get_self_share(key.id)
        pointer = self_share.id if self_share else share.id

        async with self.uow.transaction():
            await self.uow.api_keys.clear_default(key.user_id)
            await self.uow.api_keys.mark_default(key.id)
            await self.uow.users.set_default_share(key.user_id, pointer)

        logger.info(
            "default_api_key_set",
            user_id=str(key.user_id),
            key_id=str(key.id),
            share_id=str(pointer),
        )
        return key.id

    async def mark_first_default(self, user_id: UUID, key_id: UUID, self_share_id: UUID) -> bool:
        """
        Make a freshly created key the default if the user has none.

        Runs inside the caller's transaction.

        Returns:
            True if the key became the default
        """
        if await self.uow.api_keys.count_defaults(user_id) > 0:
            return False
        await self.uow.api_keys.mark_default(key_id)
        await self.uow.users.set_default_share(user_id, self_share_id)
        return True

    async def promote_next_default(self, user_id: UUID) -> Optional[UUID]:
        """
        Promote the remaining key with the oldest self-share to default.

        Args:
            user_id: Owner whose default key was removed

        Returns:
            ID of the promoted key, or None if nothing was promoted
        """
        if await self.uow.api_keys.count_defaults(user_id) > 0:
            return None

        candidate = await self.uow.api_keys.get_oldest_self_shared(user_id)
        if candidate is None:
            await self.uow.users.set_default_share(user_id, None)
            await self.uow.commit()
            logger.info("default_api_key_cleared", user_id=str(user_id))
            return None

        key, self_share = candidate
        await self.uow.api_keys.mark_default(key.id)
        await self.uow.users.set_default_share(user_id, self_share.id)
        await self.uow.commit()

        logger.info("default_api_key_promoted", user_id=str(user_id), key_id=str(key.id))
        return key.id
