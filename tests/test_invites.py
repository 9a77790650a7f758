"""
Tests for role invites.

Covers targeted institution invites, open workshop invites with use limits
and expiry, and declining and revoking.
"""
from datetime import timedelta

import pytest

from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.domain.schemas.invite import InstitutionInviteCreate, InviteStatus, WorkshopInviteCreate
from app.infrastructure.database.models import UserRoleInvite, utcnow
from app.services.auth.authorization import RoleType
from app.services.invite import InviteService, is_expired
from tests.fixtures.tenancy import get_principal


class TestIsExpired:
    """Test the expiry helper."""

    def test_expiry_and_uses(self):
        """Invites expire by date or by exhausting their uses."""
        # Arrange
        now = utcnow()
        fresh = UserRoleInvite(expires_at=now + timedelta(days=1), max_uses=2, uses_count=1)
        dated = UserRoleInvite(expires_at=now - timedelta(seconds=1), uses_count=0)
        used_up = UserRoleInvite(max_uses=2, uses_count=2)
        naive = UserRoleInvite(expires_at=(now - timedelta(minutes=1)).replace(tzinfo=None), uses_count=0)

        # Act & Assert
        assert not is_expired(fresh, now)
        assert is_expired(dated, now)
        assert is_expired(used_up, now)
        assert is_expired(naive, now)


class TestInstitutionInvites:
    """Test targeted invites into an institution."""

    @pytest.mark.asyncio
    async def test_accept_by_email(self, uow, tenancy):
        """The invited user accepts and becomes staff of the institution."""
        # Arrange
        service = InviteService(uow)
        head = await get_principal(uow, tenancy.head_id)
        invite = await service.create_institution_invite(
            head,
            tenancy.institution_id,
            InstitutionInviteCreate(role=RoleType.STAFF, invited_email="ivan@example.org"),
        )
        await uow.commit()
        invite_id = invite.id
        invited = await get_principal(uow, tenancy.individual_id)

        # Act
        role = await service.accept_invite(invited, invite_id)

        # Assert
        assert role.role == "staff"
        assert role.institution_id == tenancy.institution_id
        stored = await uow.invites.get(invite_id)
        assert stored.status == InviteStatus.ACCEPTED.value
        assert stored.accepted_by == tenancy.individual_id
        assert stored.uses_count == 1
        assert stored.invite_token is None

    @pytest.mark.asyncio
    async def test_listed_for_invited_user(self, uow, tenancy):
        """Pending invites show up for the invited user."""
        # Arrange
        service = InviteService(uow)
        head = await get_principal(uow, tenancy.head_id)
        await service.create_institution_invite(
            head,
            tenancy.institution_id,
            InstitutionInviteCreate(role=RoleType.HEAD, invited_user_id=tenancy.roleless_id),
        )
        await uow.commit()
        invited = await get_principal(uow, tenancy.roleless_id)

        # Act
        invites = await service.list_my_invites(invited)

        # Assert
        assert len(invites) == 1
        assert invites[0].role == "head"

    @pytest.mark.asyncio
    async def test_participant_role_rejected(self, uow, tenancy):
        """Institution invites cannot grant the participant role."""
        # Arrange
        head = await get_principal(uow, tenancy.head_id)

        # Act & Assert
        with pytest.raises(ValidationError):
            await InviteService(uow).create_institution_invite(
                head,
                tenancy.institution_id,
                InstitutionInviteCreate(role=RoleType.PARTICIPANT, invited_user_id=tenancy.roleless_id),
            )

    @pytest.mark.asyncio
    async def test_unknown_invited_user(self, uow, tenancy):
        """Inviting a user that does not exist is not found."""
        # Arrange
        head = await get_principal(uow, tenancy.head_id)

        # Act & Assert
        with pytest.raises(NotFoundError):
            await InviteService(uow).create_institution_invite(
                head,
                tenancy.institution_id,
                InstitutionInviteCreate(role=RoleType.STAFF, invited_user_id=tenancy.institution_id),
            )

    @pytest.mark.asyncio
    async def test_creator_cannot_accept_for_invitee(self, uow, tenancy):
        """The creator may read the invite but not accept it."""
        # Arrange
        service = InviteService(uow)
        head = await get_principal(uow, tenancy.head_id)
        invite = await service.create_institution_invite(
            head,
            tenancy.institution_id,
            InstitutionInviteCreate(role=RoleType.STAFF, invited_user_id=tenancy.roleless_id),
        )
        await uow.commit()

        # Act & Assert
        with pytest.raises(ForbiddenError):
            await service.accept_invite(head, invite.id)

    @pytest.mark.asyncio
    async def test_decline_then_accept_fails(self, uow, tenancy):
        """A declined invite can no longer be accepted."""
        # Arrange
        service = InviteService(uow)
        head = await get_principal(uow, tenancy.head_id)
        invite = await service.create_institution_invite(
            head,
            tenancy.institution_id,
            InstitutionInviteCreate(role=RoleType.STAFF, invited_user_id=tenancy.roleless_id),
        )
        await uow.commit()
        invite_id = invite.id
        invited = await get_principal(uow, tenancy.roleless_id)

        # Act
        declined = await service.decline_invite(invited, invite_id)

        # Assert
        assert declined.status == InviteStatus.DECLINED.value
        with pytest.raises(ValidationError):
            await service.accept_invite(invited, invite_id)

    @pytest.mark.asyncio
    async def test_revoke_by_creator_only(self, uow, tenancy):
        """Only the creator (or an admin) may revoke."""
        # Arrange
        service = InviteService(uow)
        head = await get_principal(uow, tenancy.head_id)
        invite = await service.create_institution_invite(
            head,
            tenancy.institution_id,
            InstitutionInviteCreate(role=RoleType.STAFF, invited_user_id=tenancy.roleless_id),
        )
        await uow.commit()
        invite_id = invite.id
        invited = await get_principal(uow, tenancy.roleless_id)

        # Act & Assert
        with pytest.raises(ForbiddenError):
            await service.revoke_invite(invited, invite_id)
        revoked = await service.revoke_invite(head, invite_id)
        assert revoked.status == InviteStatus.REVOKED.value


class TestWorkshopInvites:
    """Test open participant invites."""

    @pytest.mark.asyncio
    async def test_redeem_by_token(self, uow, tenancy):
        """A user without a role joins the workshop as participant."""
        # Arrange
        service = InviteService(uow)
        staff = await get_principal(uow, tenancy.staff_id)
        invite = await service.create_workshop_invite(staff, tenancy.workshop_id, WorkshopInviteCreate())
        await uow.commit()
        token = invite.invite_token
        joiner = await get_principal(uow, tenancy.roleless_id)

        # Act
        role = await service.accept_invite_by_token(joiner, token)

        # Assert
        assert token
        assert role.role == "participant"
        assert role.workshop_id == tenancy.workshop_id
        assert role.institution_id == tenancy.institution_id
        principal = await get_principal(uow, tenancy.roleless_id)
        assert principal.role == RoleType.PARTICIPANT

    @pytest.mark.asyncio
    async def test_max_uses_exhausts_invite(self, uow, tenancy):
        """The last use expires the invite; further redemptions fail."""
        # Arrange
        service = InviteService(uow)
        staff = await get_principal(uow, tenancy.staff_id)
        invite = await service.create_workshop_invite(
            staff, tenancy.workshop_id, WorkshopInviteCreate(max_uses=1)
        )
        await uow.commit()
        invite_id = invite.id
        token = invite.invite_token
        first = await get_principal(uow, tenancy.roleless_id)
        second = await get_principal(uow, tenancy.individual_id)

        # Act
        await service.accept_invite_by_token(first, token)

        # Assert
        stored = await uow.invites.get(invite_id)
        assert stored.uses_count == 1
        assert stored.status == InviteStatus.EXPIRED.value
        with pytest.raises(ValidationError):
            await service.accept_invite_by_token(second, token)

    @pytest.mark.asyncio
    async def test_expired_invite_marked(self, uow, tenancy):
        """Redeeming after the expiry marks the invite expired."""
        # Arrange
        service = InviteService(uow)
        staff = await get_principal(uow, tenancy.staff_id)
        invite = await service.create_workshop_invite(
            staff, tenancy.workshop_id, WorkshopInviteCreate(expires_at=utcnow() + timedelta(days=1))
        )
        await uow.commit()
        invite_id = invite.id
        token = invite.invite_token
        await uow.invites.update(invite_id, {"expires_at": utcnow() - timedelta(minutes=5)})
        await uow.commit()
        joiner = await get_principal(uow, tenancy.individual_id)

        # Act & Assert
        with pytest.raises(ValidationError):
            await service.accept_invite_by_token(joiner, token)
        stored = await uow.invites.get(invite_id)
        assert stored.status == InviteStatus.EXPIRED.value
        assert (await uow.roles.get_for_user(tenancy.individual_id)).role == "individual"

    @pytest.mark.asyncio
    async def test_past_expiry_rejected(self, uow, tenancy):
        """Invites cannot be created already expired."""
        # Arrange
        staff = await get_principal(uow, tenancy.staff_id)

        # Act & Assert
        with pytest.raises(ValidationError):
            await InviteService(uow).create_workshop_invite(
                staff,
                tenancy.workshop_id,
                WorkshopInviteCreate(expires_at=utcnow() - timedelta(days=1)),
            )

    @pytest.mark.asyncio
    async def test_institution_roles_cannot_redeem(self, uow, tenancy):
        """Heads, staff and admins cannot become participants by token."""
        # Arrange
        service = InviteService(uow)
        staff = await get_principal(uow, tenancy.staff_id)
        invite = await service.create_workshop_invite(staff, tenancy.workshop_id, WorkshopInviteCreate())
        await uow.commit()
        head = await get_principal(uow, tenancy.head_id)

        # Act & Assert
        with pytest.raises(ValidationError):
            await service.accept_invite_by_token(head, invite.invite_token)

    @pytest.mark.asyncio
    async def test_unknown_token(self, uow, tenancy):
        """Unknown tokens are not found."""
        # Arrange
        joiner = await get_principal(uow, tenancy.roleless_id)

        # Act & Assert
        with pytest.raises(NotFoundError):
            await InviteService(uow).accept_invite_by_token(joiner, "no-such-token")

    @pytest.mark.asyncio
    async def test_workshop_invite_not_accepted_by_id(self, uow, tenancy):
        """Open invites are only redeemed through their token."""
        # Arrange
        service = InviteService(uow)
        staff = await get_principal(uow, tenancy.staff_id)
        invite = await service.create_workshop_invite(staff, tenancy.workshop_id, WorkshopInviteCreate())
        await uow.commit()

        # Act & Assert
        with pytest.raises(ValidationError):
            await service.accept_invite(staff, invite.id)
