"""
Tests for the share store.

Covers key creation with its self-share, sharing with targets, share
deletion rules and the full key deletion cascade.
"""
import uuid
from datetime import datetime

import pytest

from app.core.exceptions import (
    ConflictError,
    ErrorKind,
    ForbiddenError,
    InvalidPlatformError,
    NotFoundError,
    ValidationError,
)
from app.domain.schemas.api_key import ApiKeyCreate, ApiKeyShareCreate
from app.services.api_keys import ShareStore, default_key_name, shorten_key
from tests.fixtures.tenancy import create_game, create_key, get_principal, share_key


class TestKeyHelpers:
    """Test naming and masking helpers."""

    def test_shorten_key(self):
        """Only the first characters of a secret are shown."""
        assert shorten_key("sk-abcdefghijkl") == "sk-abc..."

    def test_default_key_name(self):
        """Default names combine platform and date."""
        assert default_key_name("openai", datetime(2024, 12, 25)) == "Openai 25.12.24"


class TestCreateKey:
    """Test key creation."""

    @pytest.mark.asyncio
    async def test_first_key_becomes_default(self, uow, tenancy):
        """The first key of a user is the default and has a self-share."""
        # Act
        created = await create_key(uow, tenancy.individual_id, name="Work key")

        # Assert
        assert created.api_key.is_default is True
        assert created.api_key.name == "Work key"
        assert created.api_key.key_shortened.endswith("...")
        user = await uow.users.get(tenancy.individual_id)
        assert user.default_api_key_share_id == created.self_share_id
        self_share = await uow.shares.get(created.self_share_id)
        assert self_share.user_id == tenancy.individual_id
        assert self_share.allow_public_game_sponsoring is True

    @pytest.mark.asyncio
    async def test_second_key_is_not_default(self, uow, tenancy):
        """Later keys leave the existing default in place."""
        # Arrange
        first = await create_key(uow, tenancy.individual_id)

        # Act
        second = await create_key(uow, tenancy.individual_id, platform="mistral")

        # Assert
        assert second.api_key.is_default is False
        assert await uow.api_keys.count_defaults(tenancy.individual_id) == 1
        user = await uow.users.get(tenancy.individual_id)
        assert user.default_api_key_share_id == first.self_share_id

    @pytest.mark.asyncio
    async def test_blank_name_gets_default_name(self, uow, tenancy):
        """A blank name is replaced with the platform and date."""
        # Act
        created = await create_key(uow, tenancy.individual_id, name="   ")

        # Assert
        assert created.api_key.name.startswith("Openai ")

    @pytest.mark.asyncio
    async def test_unknown_platform_rejected(self, uow, tenancy):
        """Unknown platforms are rejected before anything is written."""
        # Act & Assert
        with pytest.raises(InvalidPlatformError) as exc_info:
            await create_key(uow, tenancy.individual_id, platform="skynet")
        assert exc_info.value.kind == ErrorKind.INVALID_PLATFORM
        assert await uow.api_keys.count_by_user(tenancy.individual_id) == 0

    @pytest.mark.asyncio
    async def test_blank_secret_rejected(self, uow, tenancy):
        """Whitespace-only secrets are rejected."""
        # Arrange
        principal = await get_principal(uow, tenancy.individual_id)

        # Act & Assert
        with pytest.raises(ValidationError):
            await ShareStore(uow).create_key(principal, ApiKeyCreate(platform="openai", key="   "))


class TestCreateShare:
    """Test sharing a key with targets."""

    @pytest.mark.asyncio
    async def test_share_with_workshop(self, uow, tenancy):
        """The owner can share a key with a workshop."""
        # Arrange
        created = await create_key(uow, tenancy.staff_id)

        # Act
        share_id = await share_key(
            uow, tenancy.staff_id, created.self_share_id, "workshop", tenancy.workshop_id
        )

        # Assert
        share = await uow.shares.get(share_id)
        assert share.workshop_id == tenancy.workshop_id
        assert share.user_id is None
        assert share.api_key_id == created.api_key.id

    @pytest.mark.asyncio
    async def test_only_owner_can_share(self, uow, tenancy):
        """A share target cannot re-share the key."""
        # Arrange
        created = await create_key(uow, tenancy.staff_id)
        user_share_id = await share_key(
            uow, tenancy.staff_id, created.self_share_id, "user", tenancy.individual_id
        )

        # Act & Assert
        with pytest.raises(ForbiddenError):
            await share_key(uow, tenancy.individual_id, user_share_id, "user", tenancy.head_id)

    @pytest.mark.asyncio
    async def test_duplicate_share_conflicts(self, uow, tenancy):
        """Sharing twice with the same target is a conflict."""
        # Arrange
        created = await create_key(uow, tenancy.staff_id)
        await share_key(uow, tenancy.staff_id, created.self_share_id, "institution", tenancy.institution_id)

        # Act & Assert
        with pytest.raises(ConflictError):
            await share_key(
                uow, tenancy.staff_id, created.self_share_id, "institution", tenancy.institution_id
            )

    @pytest.mark.asyncio
    async def test_missing_target(self, uow, tenancy):
        """Sharing with a target that does not exist is not found."""
        # Arrange
        created = await create_key(uow, tenancy.staff_id)
        principal = await get_principal(uow, tenancy.staff_id)

        # Act & Assert
        with pytest.raises(NotFoundError):
            await ShareStore(uow).create_share(
                principal,
                created.self_share_id,
                ApiKeyShareCreate(target={"kind": "game", "id": uuid.uuid4()}),
            )

    @pytest.mark.asyncio
    async def test_missing_share(self, uow, tenancy):
        """Unknown shares are not found."""
        # Arrange
        principal = await get_principal(uow, tenancy.staff_id)

        # Act & Assert
        with pytest.raises(NotFoundError):
            await ShareStore(uow).list_shares_for_key(principal, uuid.uuid4())


class TestDeleteShare:
    """Test removing single shares."""

    @pytest.mark.asyncio
    async def test_target_user_removes_own_access(self, uow, tenancy):
        """The target user may delete the share granting them access."""
        # Arrange
        created = await create_key(uow, tenancy.staff_id)
        share_id = await share_key(uow, tenancy.staff_id, created.self_share_id, "user", tenancy.individual_id)
        individual = await get_principal(uow, tenancy.individual_id)

        # Act
        await ShareStore(uow).delete_share(individual, share_id)

        # Assert
        assert await uow.shares.get(share_id) is None
        assert await uow.api_keys.get(created.api_key.id) is not None

    @pytest.mark.asyncio
    async def test_self_share_cannot_be_deleted(self, uow, tenancy):
        """The owner's self-share is only removed with the key."""
        # Arrange
        created = await create_key(uow, tenancy.staff_id)
        owner = await get_principal(uow, tenancy.staff_id)

        # Act & Assert
        with pytest.raises(ValidationError):
            await ShareStore(uow).delete_share(owner, created.self_share_id)

    @pytest.mark.asyncio
    async def test_stranger_cannot_delete(self, uow, tenancy):
        """Neither owner nor target means forbidden."""
        # Arrange
        created = await create_key(uow, tenancy.staff_id)
        share_id = await share_key(uow, tenancy.staff_id, created.self_share_id, "workshop", tenancy.workshop_id)
        participant = await get_principal(uow, tenancy.participant_id)

        # Act & Assert
        with pytest.raises(ForbiddenError):
            await ShareStore(uow).delete_share(participant, share_id)

    @pytest.mark.asyncio
    async def test_deleting_sponsor_share_clears_game(self, uow, tenancy):
        """Games sponsored through a deleted share lose their sponsorship."""
        # Arrange
        created = await create_key(uow, tenancy.staff_id)
        game_id = await create_game(uow, tenancy.staff_id, public=True)
        share_id = await share_key(uow, tenancy.staff_id, created.self_share_id, "game", game_id)
        await uow.games.update(game_id, {
            "public_sponsored_api_key_share_id": share_id,
            "private_share_hash": "tok",
            "private_sponsored_api_key_share_id": share_id,
            "private_share_remaining": 3,
        })
        await uow.commit()
        owner = await get_principal(uow, tenancy.staff_id)

        # Act
        await ShareStore(uow).delete_share(owner, share_id)

        # Assert
        game = await uow.games.get(game_id)
        assert game.public_sponsored_api_key_share_id is None
        assert game.private_sponsored_api_key_share_id is None
        assert game.private_share_hash is None
        assert game.private_share_remaining is None


class TestDeleteKey:
    """Test deleting a key with all of its shares."""

    @pytest.mark.asyncio
    async def test_cascade_clears_every_reference(self, uow, tenancy):
        """Shares, scope pointers, system key and sessions are cleaned up."""
        # Arrange
        created = await create_key(uow, tenancy.staff_id)
        key_id = created.api_key.id
        workshop_share = await share_key(
            uow, tenancy.staff_id, created.self_share_id, "workshop", tenancy.workshop_id
        )
        institution_share = await share_key(
            uow, tenancy.staff_id, created.self_share_id, "institution", tenancy.institution_id
        )
        game_id = await create_game(uow, tenancy.staff_id)
        await uow.workshops.update(tenancy.workshop_id, {"default_api_key_share_id": workshop_share})
        await uow.institutions.update(tenancy.institution_id, {"free_use_api_key_share_id": institution_share})
        settings_row = await uow.system_settings.get_or_create()
        await uow.system_settings.update(settings_row.id, {"free_use_api_key_id": key_id})
        session = await uow.game_sessions.create({
            "game_id": game_id,
            "user_id": tenancy.staff_id,
            "api_key_id": key_id,
        })
        await uow.commit()
        session_id = session.id
        owner = await get_principal(uow, tenancy.staff_id)

        # Act
        outcome = await ShareStore(uow).delete_key(owner, workshop_share)

        # Assert
        assert await uow.api_keys.get(key_id) is None
        assert await uow.shares.list_ids_by_key(key_id) == []
        assert (await uow.workshops.get(tenancy.workshop_id)).default_api_key_share_id is None
        assert (await uow.institutions.get(tenancy.institution_id)).free_use_api_key_share_id is None
        assert (await uow.system_settings.get_current()).free_use_api_key_id is None
        assert (await uow.game_sessions.get(session_id)).api_key_id is None
        assert (await uow.users.get(tenancy.staff_id)).default_api_key_share_id is None
        assert outcome is not None and outcome.succeeded
        assert outcome.result is None

    @pytest.mark.asyncio
    async def test_default_promoted_to_oldest_remaining(self, uow, tenancy):
        """Deleting the default key promotes the oldest remaining key."""
        # Arrange
        first = await create_key(uow, tenancy.individual_id, name="first")
        second = await create_key(uow, tenancy.individual_id, name="second")
        third = await create_key(uow, tenancy.individual_id, name="third")
        owner = await get_principal(uow, tenancy.individual_id)

        # Act
        outcome = await ShareStore(uow).delete_key(owner, first.self_share_id)

        # Assert
        assert outcome.succeeded
        assert outcome.result == second.api_key.id
        assert (await uow.api_keys.get_default(tenancy.individual_id)).id == second.api_key.id
        assert (await uow.users.get(tenancy.individual_id)).default_api_key_share_id == second.self_share_id
        assert (await uow.api_keys.get(third.api_key.id)).is_default is False

    @pytest.mark.asyncio
    async def test_non_default_key_needs_no_promotion(self, uow, tenancy):
        """Deleting a non-default key leaves the default untouched."""
        # Arrange
        first = await create_key(uow, tenancy.individual_id)
        second = await create_key(uow, tenancy.individual_id)
        owner = await get_principal(uow, tenancy.individual_id)

        # Act
        outcome = await ShareStore(uow).delete_key(owner, second.self_share_id)

        # Assert
        assert outcome is None
        assert (await uow.api_keys.get_default(tenancy.individual_id)).id == first.api_key.id

    @pytest.mark.asyncio
    async def test_only_owner_deletes(self, uow, tenancy):
        """Share targets cannot delete the key."""
        # Arrange
        created = await create_key(uow, tenancy.staff_id)
        share_id = await share_key(uow, tenancy.staff_id, created.self_share_id, "user", tenancy.individual_id)
        individual = await get_principal(uow, tenancy.individual_id)

        # Act & Assert
        with pytest.raises(ForbiddenError):
            await ShareStore(uow).delete_key(individual, share_id)


class TestListShares:
    """Test share listings."""

    @pytest.mark.asyncio
    async def test_principal_sees_own_and_received_shares(self, uow, tenancy):
        """Own self-shares and shares to the user are listed, default marked."""
        # Arrange
        own = await create_key(uow, tenancy.individual_id)
        foreign = await create_key(uow, tenancy.staff_id)
        received = await share_key(uow, tenancy.staff_id, foreign.self_share_id, "user", tenancy.individual_id)
        principal = await get_principal(uow, tenancy.individual_id)

        # Act
        shares = await ShareStore(uow).list_shares_for_principal(principal)

        # Assert
        by_id = {share.id: share for share in shares}
        assert set(by_id) == {own.self_share_id, received}
        assert by_id[own.self_share_id].is_user_default is True
        assert by_id[received].is_user_default is False
        assert by_id[received].target.kind == "user"

    @pytest.mark.asyncio
    async def test_share_info_linked_only_for_owner(self, uow, tenancy):
        """Owners see linked shares; targets see only their share."""
        # Arrange
        created = await create_key(uow, tenancy.staff_id)
        received = await share_key(uow, tenancy.staff_id, created.self_share_id, "user", tenancy.individual_id)
        owner = await get_principal(uow, tenancy.staff_id)
        target = await get_principal(uow, tenancy.individual_id)
        store = ShareStore(uow)

        # Act
        owner_info = await store.get_share_info(owner, received)
        target_info = await store.get_share_info(target, received)

        # Assert
        assert len(owner_info.linked_shares) == 2
        assert target_info.linked_shares == []
        assert target_info.share.id == received
