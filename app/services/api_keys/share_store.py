"""
Share store: API keys and the shares that grant access to them.

Keys are always addressed through one of their shares; ownership is
verified by walking share -> key and never taken from the caller.
"""
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Sequence
from uuid import UUID

import structlog

from app.core.best_effort import AttemptOutcome, attempt
from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidPlatformError,
    NotFoundError,
    ValidationError,
)
from app.domain.schemas.api_key import (
    ApiKeyCreate,
    ApiKeyCreated,
    ApiKeyRead,
    ApiKeyShareCreate,
    ApiKeyShareInfo,
    ApiKeyShareRead,
)
from app.infrastructure.database.models import ApiKey, ApiKeyShare
from app.repositories.unit_of_work import UnitOfWork
from app.services.api_keys.default_keys import DefaultKeyService
from app.services.auth.authorization import (
    AuthorizationService,
    PermissionAction,
    Principal,
    ShareTarget,
    target_columns,
    target_of,
)

logger = structlog.get_logger(__name__)


def shorten_key(key: str) -> str:
    """Show only the first characters of a secret."""
    return key[:settings.API_KEY_SHORTEN_LENGTH] + "..."


def default_key_name(platform: str, now: Optional[datetime] = None) -> str:
    """Name used when a key is created without one, e.g. ``Openai 24.12.25``."""
    now = now or datetime.now()
    return f"{platform.capitalize()} {now:%d.%m.%y}"


def to_api_key_read(key: ApiKey) -> ApiKeyRead:
    return ApiKeyRead(
        id=key.id,
        user_id=key.user_id,
        name=key.name,
        platform=key.platform,
        key_shortened=shorten_key(key.key),
        is_default=key.is_default,
        last_usage_success=key.last_usage_success,
        created_at=key.created_at,
    )


async def clear_share_references(uow: UnitOfWork, share_ids: Sequence[UUID]) -> None:
    """Clear every pointer at shares that are about to be deleted."""
    await uow.users.clear_default_share_refs(share_ids)
    await uow.workshops.clear_default_share_refs(share_ids)
    await uow.institutions.clear_free_use_refs(share_ids)
    await uow.games.clear_sponsor_refs(share_ids)


def to_share_read(
    share: ApiKeyShare,
    key: ApiKey,
    default_share_id: Optional[UUID] = None,
) -> ApiKeyShareRead:
    return ApiKeyShareRead(
        id=share.id,
        api_key=to_api_key_read(key),
        target=target_of(share),
        allow_public_game_sponsoring=share.allow_public_game_sponsoring,
        is_user_default=default_share_id is not None and share.id == default_share_id,
        created_at=share.created_at,
    )


class ShareStore:
    """Creates, lists and deletes API keys and their shares."""

    def __init__(
        self,
        uow: UnitOfWork,
        authz: Optional[AuthorizationService] = None,
        defaults: Optional[DefaultKeyService] = None,
    ):
        self.uow = uow
        self.authz = authz or AuthorizationService(uow)
        self.defaults = defaults or DefaultKeyService(uow, self.authz)

    async def create_key(self, principal: Principal, data: ApiKeyCreate) -> ApiKeyCreated:
        """
        Create an API key together with its self-share.

        The key, its self-share and (for the first key) the default flag are
        written in one transaction.

        Args:
            principal: Owner of the new key
            data: Name, platform and secret

        Returns:
            The key (without secret) and its self-share ID

        Raises:
            InvalidPlatformError: If the platform is unknown
            ValidationError: If the key is blank
        """
        (await self.authz.can_access_api_key(principal, PermissionAction.CREATE)).ensure()

        platform = data.platform.strip()
        if platform not in settings.API_KEY_PLATFORMS:
            raise InvalidPlatformError(platform)
        secret = data.key.strip()
        if not secret:
            raise ValidationError("API key must not be empty", field="key")
        name = (data.name or "").strip() or default_key_name(platform)

        async with self.uow.transaction():
            key = await self.uow.api_keys.create({
                "user_id": principal.id,
                "name": name,
                "platform": platform,
                "key": secret,
                "created_by": principal.id,
            })
            self_share = await self.uow.shares.create({
                "api_key_id": key.id,
                "user_id": principal.id,
                "allow_public_game_sponsoring": True,
                "created_by": principal.id,
            })
            is_default = await self.defaults.mark_first_default(principal.id, key.id, self_share.id)

        logger.info(
            "api_key_created",
            key_id=str(key.id),
            owner_id=str(principal.id),
            platform=platform,
            is_default=is_default,
        )
        return ApiKeyCreated(api_key=to_api_key_read(key), self_share_id=self_share.id)

    async def update_key_name(self, principal: Principal, share_id: UUID, name: str) -> ApiKeyRead:
        """
        Rename the key behind a share (owner only).

        Args:
            principal: Acting principal
            share_id: Any share of the key
            name: New name

        Returns:
            The updated key
        """
        share, key = await self._get_share_with_key(share_id)
        (await self.authz.can_access_api_key(principal, PermissionAction.UPDATE, key.id)).ensure()

        name = name.strip()
        if not name:
            raise ValidationError("Name must not be empty", field="name")

        key = await self.uow.api_keys.update(key.id, {"name": name, "modified_by": principal.id})
        return to_api_key_read(key)

    async def create_share(
        self,
        principal: Principal,
        share_id: UUID,
        data: ApiKeyShareCreate,
    ) -> ApiKeyShareRead:
        """
        Share the key behind an existing share with a new target.

        Args:
            principal: Acting principal, must own the key
            share_id: Any share of the key
            data: Target and sponsoring flag

        Returns:
            The new share

        Raises:
            ForbiddenError: If the principal does not own the key
            NotFoundError: If the share or the target does not exist
            ConflictError: If the key is already shared with the target
        """
        _, key = await self._get_share_with_key(share_id)
        result = await self.authz.can_access_api_key(principal, PermissionAction.UPDATE, key.id)
        if result.denied:
            raise ForbiddenError("Only the owner can share this key")

        await self._ensure_target_exists(data.target)
        columns = target_columns(data.target)
        if await self.uow.shares.find_for_target(key.id, **columns) is not None:
            raise ConflictError(
                f"API key is already shared with this {data.target.kind}",
                details={"target": data.target.kind},
            )

        share = await self.uow.shares.create({
            "api_key_id": key.id,
            "allow_public_game_sponsoring": data.allow_public_game_sponsoring,
            "created_by": principal.id,
            **columns,
        })
        logger.info(
            "api_key_shared",
            key_id=str(key.id),
            share_id=str(share.id),
            target_kind=data.target.kind,
            target_id=str(data.target.id),
        )
        return to_share_read(share, key)

    async def update_share_allow_public_sponsoring(
        self,
        principal: Principal,
        share_id: UUID,
        allow: bool,
    ) -> ApiKeyShareRead:
        """Toggle whether a share may sponsor public games (key owner only)."""
        share, key = await self._get_share_with_key(share_id)
        (await self.authz.can_access_api_key(principal, PermissionAction.UPDATE, key.id)).ensure()

        share = await self.uow.shares.update(share.id, {
            "allow_public_game_sponsoring": allow,
            "modified_by": principal.id,
        })
        logger.info("api_key_share_sponsoring_updated", share_id=str(share.id), allow=allow)
        return to_share_read(share, key, principal.default_api_key_share_id)

    async def delete_share(self, principal: Principal, share_id: UUID) -> None:
        """
        Delete a single share.

        The key owner may delete any share; a target user may remove their
        own access. Self-shares are removed only by deleting the key.

        Raises:
            NotFoundError: If the share does not exist
            ForbiddenError: If the principal is neither owner nor target
            ValidationError: If the share is the owner's self-share
        """
        share, key = await self._get_share_with_key(share_id)

        is_owner = key.user_id == principal.id
        is_target = share.user_id is not None and share.user_id == principal.id
        if not is_owner and not is_target:
            raise ForbiddenError("Not authorized to delete this share")
        if share.user_id == key.user_id:
            raise ValidationError(
                "The owner's own share cannot be removed, delete the API key instead",
                field="share_id",
            )

        async with self.uow.transaction():
            await clear_share_references(self.uow, [share.id])
            await self.uow.shares.delete_many([share.id])

        logger.info(
            "api_key_share_deleted",
            share_id=str(share_id),
            key_id=str(key.id),
            deleted_by=str(principal.id),
        )

    async def delete_key(self, principal: Principal, share_id: UUID) -> Optional[AttemptOutcome]:
        """
        Delete the key behind a share with all of its shares.

        Every reference to the key or its shares is cleared in the same
        transaction. If the key was its owner's default, the next default is
        promoted afterwards on a best-effort basis.

        Args:
            principal: Acting principal, must own the key
            share_id: Any share of the key

        Returns:
            Outcome of the default promotion, or None if none was needed
        """
        _, key = await self._get_share_with_key(share_id)
        (await self.authz.can_access_api_key(principal, PermissionAction.DELETE, key.id)).ensure()

        key_id = key.id
        owner_id = key.user_id
        was_default = key.is_default

        async with self.uow.transaction():
            share_ids = await self.uow.shares.list_ids_by_key(key_id)
            await self.uow.game_sessions.clear_api_key(key_id)
            await clear_share_references(self.uow, share_ids)
            await self.uow.system_settings.clear_free_use_key(key_id)
            await self.uow.shares.delete_many(share_ids)
            await self.uow.api_keys.delete(key_id)

        logger.info(
            "api_key_deleted",
            key_id=str(key_id),
            owner_id=str(owner_id),
            shares_deleted=len(share_ids),
        )

        if not was_default:
            return None
        return await attempt(
            "promote_next_default_key",
            lambda: self.defaults.promote_next_default(owner_id),
            on_failure=self.uow.rollback,
            user_id=str(owner_id),
        )

    async def list_shares_for_principal(self, principal: Principal) -> List[ApiKeyShareRead]:
        """
        List every share that targets the principal, including self-shares.

        Returns:
            Shares with their keys, oldest first
        """
        (await self.authz.can_access_api_key(principal, PermissionAction.LIST)).ensure()
        user = await self.uow.users.get_active(principal.id)
        default_share_id = user.default_api_key_share_id if user else None

        rows = await self.uow.shares.list_for_user_with_keys(principal.id)
        return [to_share_read(share, key, default_share_id) for share, key in rows]

    async def list_shares_for_key(self, principal: Principal, share_id: UUID) -> List[ApiKeyShareRead]:
        """List all shares of the key behind a share (owner only)."""
        _, key = await self._get_share_with_key(share_id)
        if key.user_id != principal.id:
            raise ForbiddenError("Only the owner can view the shares of this key")
        shares = await self.uow.shares.list_by_key(key.id)
        return [to_share_read(share, key) for share in shares]

    async def get_share_info(self, principal: Principal, share_id: UUID) -> ApiKeyShareInfo:
        """
        Get a share, plus all linked shares of its key for the owner.

        Raises:
            ForbiddenError: If the principal is neither owner nor target user
        """
        share, key = await self._get_share_with_key(share_id)
        is_owner = key.user_id == principal.id
        is_target = share.user_id is not None and share.user_id == principal.id
        if not is_owner and not is_target:
            raise ForbiddenError("Not authorized to view this share")

        linked: List[ApiKeyShareRead] = []
        if is_owner:
            linked = [to_share_read(s, key) for s in await self.uow.shares.list_by_key(key.id)]
        return ApiKeyShareInfo(
            share=to_share_read(share, key, principal.default_api_key_share_id),
            linked_shares=linked,
        )

    async def _get_share_with_key(self, share_id: UUID):
        row = await self.uow.shares.get_with_key(share_id)
        if row is None:
            raise NotFoundError("API key share", share_id)
        return row

    async def _ensure_target_exists(self, target: ShareTarget) -> None:
        lookups: Dict[str, Callable[[UUID], Awaitable[object]]] = {
            "user": self.uow.users.get_active,
            "workshop": self.uow.workshops.get_active,
            "institution": self.uow.institutions.get,
            "game": self.uow.games.get_active,
        }
        if await lookups[target.kind](target.id) is None:
            raise NotFoundError(target.kind.capitalize(), target.id)
