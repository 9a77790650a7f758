"""
Invite service.

Institution invites are targeted at one user (by ID or email) and grant the
head or staff role. Workshop invites are open: anyone holding the token may
join the workshop as a participant until the invite expires or runs out of
uses. Accepting an invite replaces the accepting user's role.
"""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

import structlog

from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.core.security import generate_invite_token
from app.domain.schemas.invite import InstitutionInviteCreate, InviteStatus, WorkshopInviteCreate
from app.infrastructure.database.models import UserRole, UserRoleInvite, utcnow
from app.repositories.unit_of_work import UnitOfWork
from app.services.auth.authorization import (
    AuthorizationService,
    PermissionAction,
    Principal,
    RoleType,
)

logger = structlog.get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(invite: UserRoleInvite, now: Optional[datetime] = None) -> bool:
    """Check whether an invite has passed its expiry or used up its uses."""
    now = now or utcnow()
    if invite.expires_at is not None and _as_utc(invite.expires_at) <= now:
        return True
    return invite.max_uses is not None and invite.uses_count >= invite.max_uses


class InviteService:
    """Creates, accepts, declines and revokes role invites."""

    def __init__(self, uow: UnitOfWork, authz: Optional[AuthorizationService] = None):
        self.uow = uow
        self.authz = authz or AuthorizationService(uow)

    async def create_institution_invite(
        self,
        principal: Principal,
        institution_id: UUID,
        data: InstitutionInviteCreate,
    ) -> UserRoleInvite:
        """
        Invite a user into an institution as head or staff.

        Args:
            principal: Admin or head of the institution
            institution_id: Institution ID
            data: Role and invitee

        Returns:
            Created invite

        Raises:
            ValidationError: If the role is not head or staff
            NotFoundError: If the institution or invited user does not exist
        """
        result = await self.authz.can_access_invite(
            principal,
            PermissionAction.CREATE,
            institution_id=institution_id,
            role=data.role.value,
        )
        result.ensure()

        if data.invited_user_id is not None and await self.uow.users.get_active(data.invited_user_id) is None:
            raise NotFoundError("User", data.invited_user_id)

        invite = await self.uow.invites.create({
            "institution_id": institution_id,
            "role": data.role.value,
            "invited_user_id": data.invited_user_id,
            "invited_email": data.invited_email.strip() if data.invited_email else None,
            "status": InviteStatus.PENDING.value,
            "created_by": principal.id,
        })
        logger.info(
            "institution_invite_created",
            invite_id=str(invite.id),
            institution_id=str(institution_id),
            role=data.role.value,
        )
        return invite

    async def create_workshop_invite(
        self,
        principal: Principal,
        workshop_id: UUID,
        data: WorkshopInviteCreate,
    ) -> UserRoleInvite:
        """
        Create an open participant invite for a workshop.

        Args:
            principal: Principal allowed to update the workshop
            workshop_id: Workshop ID
            data: Optional use limit and expiry

        Returns:
            Created invite carrying its token
        """
        result = await self.authz.can_access_invite(
            principal,
            PermissionAction.CREATE,
            workshop_id=workshop_id,
            role=RoleType.PARTICIPANT.value,
        )
        result.ensure()
        if data.expires_at is not None and _as_utc(data.expires_at) <= utcnow():
            raise ValidationError("Expiry must be in the future", field="expires_at")

        workshop = await self.uow.workshops.get_active(workshop_id)
        invite = await self.uow.invites.create({
            "institution_id": workshop.institution_id,
            "workshop_id": workshop.id,
            "role": RoleType.PARTICIPANT.value,
            "invite_token": generate_invite_token(),
            "max_uses": data.max_uses,
            "expires_at": data.expires_at,
            "status": InviteStatus.PENDING.value,
            "created_by": principal.id,
        })
        logger.info(
            "workshop_invite_created",
            invite_id=str(invite.id),
            workshop_id=str(workshop_id),
            max_uses=data.max_uses,
        )
        return invite

    async def list_institution_invites(self, principal: Principal, institution_id: UUID) -> List[UserRoleInvite]:
        result = await self.authz.can_access_invite(
            principal, PermissionAction.LIST, institution_id=institution_id
        )
        result.ensure()
        return await self.uow.invites.list_by_institution(institution_id)

    async def list_my_invites(self, principal: Principal) -> List[UserRoleInvite]:
        """List pending invites addressed to the principal."""
        return await self.uow.invites.list_pending_for_user(principal.id, principal.email)

    async def get_invite(self, principal: Principal, invite_id: UUID) -> UserRoleInvite:
        (await self.authz.can_access_invite(principal, PermissionAction.READ, invite_id)).ensure()
        return await self.uow.invites.get(invite_id)

    async def accept_invite(self, principal: Principal, invite_id: UUID) -> UserRole:
        """
        Accept a targeted invite.

        The old role is replaced and the invite marked accepted in one
        transaction.

        Returns:
            The new role

        Raises:
            ForbiddenError: If the invite is not addressed to the principal
            ValidationError: If the invite is no longer pending or expired
        """
        (await self.authz.can_access_invite(principal, PermissionAction.UPDATE, invite_id)).ensure()
        invite = await self.uow.invites.get(invite_id)
        if invite.workshop_id is not None:
            raise ValidationError("Workshop invites are redeemed with their token", field="invite_id")
        if invite.invited_user_id != principal.id and (
            invite.invited_email is None or invite.invited_email != principal.email
        ):
            raise ForbiddenError("Only the invited user can accept this invite")
        await self._ensure_acceptable(invite)

        async with self.uow.transaction():
            role = await self.uow.roles.replace(
                principal.id,
                invite.role,
                institution_id=invite.institution_id,
                workshop_id=invite.workshop_id,
                created_by=invite.created_by,
            )
            await self.uow.invites.update(invite.id, {
                "status": InviteStatus.ACCEPTED.value,
                "accepted_at": utcnow(),
                "accepted_by": principal.id,
                "uses_count": invite.uses_count + 1,
            })

        logger.info(
            "invite_accepted",
            invite_id=str(invite_id),
            user_id=str(principal.id),
            role=invite.role,
        )
        return role

    async def accept_invite_by_token(self, principal: Principal, token: str) -> UserRole:
        """
        Join a workshop through an open invite token.

        Users without a role, individuals and participants become participants
        of the workshop. Counts one use; an invite whose last use is taken
        becomes expired. Role replacement and use counting happen in one
        transaction.

        Returns:
            The new participant role

        Raises:
            ValidationError: If the principal holds an institution or admin role
        """
        if principal.has_role(RoleType.ADMIN, RoleType.HEAD, RoleType.STAFF):
            raise ValidationError(
                f"Users with the {principal.role.value} role cannot join a workshop as participant",
                field="role",
            )
        invite = await self.uow.invites.get_by_token(token)
        if invite is None or invite.workshop_id is None:
            raise NotFoundError("Invite")
        await self._ensure_acceptable(invite)

        uses_count = invite.uses_count + 1
        exhausted = invite.max_uses is not None and uses_count >= invite.max_uses

        async with self.uow.transaction():
            role = await self.uow.roles.replace(
                principal.id,
                RoleType.PARTICIPANT.value,
                institution_id=invite.institution_id,
                workshop_id=invite.workshop_id,
                created_by=invite.created_by,
            )
            await self.uow.invites.update(invite.id, {
                "uses_count": uses_count,
                "status": InviteStatus.EXPIRED.value if exhausted else InviteStatus.PENDING.value,
            })

        logger.info(
            "workshop_invite_redeemed",
            invite_id=str(invite.id),
            user_id=str(principal.id),
            workshop_id=str(invite.workshop_id),
            uses_count=uses_count,
        )
        return role

    async def decline_invite(self, principal: Principal, invite_id: UUID) -> UserRoleInvite:
        (await self.authz.can_access_invite(principal, PermissionAction.UPDATE, invite_id)).ensure()
        invite = await self.uow.invites.get(invite_id)
        self._ensure_pending(invite)
        invite = await self.uow.invites.update(invite.id, {
            "status": InviteStatus.DECLINED.value,
            "modified_by": principal.id,
        })
        logger.info("invite_declined", invite_id=str(invite_id), user_id=str(principal.id))
        return invite

    async def revoke_invite(self, principal: Principal, invite_id: UUID) -> UserRoleInvite:
        """Revoke a pending invite (creator or admin)."""
        (await self.authz.can_access_invite(principal, PermissionAction.DELETE, invite_id)).ensure()
        invite = await self.uow.invites.get(invite_id)
        self._ensure_pending(invite)
        invite = await self.uow.invites.update(invite.id, {
            "status": InviteStatus.REVOKED.value,
            "modified_by": principal.id,
        })
        logger.info("invite_revoked", invite_id=str(invite_id), revoked_by=str(principal.id))
        return invite

    @staticmethod
    def _ensure_pending(invite: UserRoleInvite) -> None:
        if invite.status != InviteStatus.PENDING.value:
            raise ValidationError(f"Invite is {invite.status}", field="status")

    async def _ensure_acceptable(self, invite: UserRoleInvite) -> None:
        self._ensure_pending(invite)
        if is_expired(invite):
            async with self.uow.transaction():
                await self.uow.invites.update(invite.id, {"status": InviteStatus.EXPIRED.value})
            logger.info("invite_expired", invite_id=str(invite.id))
            raise ValidationError("Invite has expired", field="status")
