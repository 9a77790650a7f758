"""
Tests for principal resolution and share targets.
"""
import uuid

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import NotFoundError, ValidationError
from app.infrastructure.database.models import ApiKeyShare, utcnow
from app.services.auth.authorization import (
    GameTarget,
    PrincipalResolver,
    RoleType,
    UserTarget,
    parse_share_target,
    target_columns,
    target_of,
)


class TestPrincipalResolver:
    """Test loading role and scope of a user."""

    @pytest.mark.asyncio
    async def test_participant_inherits_institution(self, uow, tenancy):
        """A participant is scoped to the workshop and its institution."""
        # Arrange
        resolver = PrincipalResolver(uow)

        # Act
        principal = await resolver.get_principal(tenancy.participant_id)

        # Assert
        assert principal.role == RoleType.PARTICIPANT
        assert principal.workshop_id == tenancy.workshop_id
        assert principal.institution_id == tenancy.institution_id

    @pytest.mark.asyncio
    async def test_institution_taken_from_workshop(self, uow, tenancy):
        """A workshop-scoped role without institution gets the workshop's institution."""
        # Arrange
        await uow.roles.replace(tenancy.roleless_id, "participant", workshop_id=tenancy.workshop_id)
        await uow.commit()

        # Act
        principal = await PrincipalResolver(uow).get_principal(tenancy.roleless_id)

        # Assert
        assert principal.institution_id == tenancy.institution_id

    @pytest.mark.asyncio
    async def test_user_without_role(self, uow, tenancy):
        """Users without a role resolve with no scope."""
        # Act
        principal = await PrincipalResolver(uow).get_principal(tenancy.roleless_id)

        # Assert
        assert principal.role is None
        assert principal.institution_id is None
        assert not principal.has_role(RoleType.INDIVIDUAL)

    @pytest.mark.asyncio
    async def test_deleted_or_unknown_user(self, uow, tenancy):
        """Deleted and unknown users are not found."""
        # Arrange
        await uow.users.update(tenancy.individual_id, {"deleted_at": utcnow()})
        await uow.commit()
        resolver = PrincipalResolver(uow)

        # Act & Assert
        with pytest.raises(NotFoundError):
            await resolver.get_principal(tenancy.individual_id)
        with pytest.raises(NotFoundError):
            await resolver.get_principal(uuid.uuid4())


class TestShareTargets:
    """Test the share target union."""

    def test_parse_target(self):
        """A kind/id mapping parses into the matching target type."""
        # Arrange
        target_id = uuid.uuid4()

        # Act
        target = parse_share_target({"kind": "game", "id": str(target_id)})

        # Assert
        assert isinstance(target, GameTarget)
        assert target.id == target_id
        assert target_columns(target) == {"game_id": target_id}

    def test_unknown_kind_rejected(self):
        """Unknown kinds are rejected."""
        with pytest.raises(PydanticValidationError):
            parse_share_target({"kind": "planet", "id": str(uuid.uuid4())})

    def test_target_of_share_row(self):
        """The single target column of a row is read back as a target."""
        # Arrange
        user_id = uuid.uuid4()
        share = ApiKeyShare(api_key_id=uuid.uuid4(), user_id=user_id)

        # Act
        target = target_of(share)

        # Assert
        assert target == UserTarget(id=user_id)

    def test_target_of_rejects_ambiguous_rows(self):
        """Rows with zero or several targets are invalid."""
        # Arrange
        empty = ApiKeyShare(api_key_id=uuid.uuid4())
        double = ApiKeyShare(api_key_id=uuid.uuid4(), user_id=uuid.uuid4(), game_id=uuid.uuid4())

        # Act & Assert
        with pytest.raises(ValidationError):
            target_of(empty)
        with pytest.raises(ValidationError):
            target_of(double)
