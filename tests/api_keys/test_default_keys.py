"""
Tests for the default-key lifecycle.
"""
import uuid

import pytest

from app.core.exceptions import ForbiddenError, NotFoundError
from app.services.api_keys import DefaultKeyService
from tests.fixtures.tenancy import create_key, get_principal, share_key


class TestSetDefault:
    """Test choosing the default key."""

    @pytest.mark.asyncio
    async def test_switch_default(self, uow, tenancy):
        """Setting a new default clears the old one and moves the pointer."""
        # Arrange
        first = await create_key(uow, tenancy.individual_id)
        second = await create_key(uow, tenancy.individual_id)
        owner = await get_principal(uow, tenancy.individual_id)

        # Act
        key_id = await DefaultKeyService(uow).set_default_api_key(owner, second.self_share_id)

        # Assert
        assert key_id == second.api_key.id
        assert await uow.api_keys.count_defaults(tenancy.individual_id) == 1
        assert (await uow.api_keys.get(first.api_key.id)).is_default is False
        assert (await uow.users.get(tenancy.individual_id)).default_api_key_share_id == second.self_share_id

    @pytest.mark.asyncio
    async def test_pointer_uses_self_share(self, uow, tenancy):
        """Addressing the key through another share still points at the self-share."""
        # Arrange
        await create_key(uow, tenancy.staff_id)
        second = await create_key(uow, tenancy.staff_id)
        workshop_share = await share_key(
            uow, tenancy.staff_id, second.self_share_id, "workshop", tenancy.workshop_id
        )
        owner = await get_principal(uow, tenancy.staff_id)

        # Act
        await DefaultKeyService(uow).set_default_api_key(owner, workshop_share)

        # Assert
        assert (await uow.users.get(tenancy.staff_id)).default_api_key_share_id == second.self_share_id

    @pytest.mark.asyncio
    async def test_share_target_cannot_set_default(self, uow, tenancy):
        """Only the owner may make a key the default."""
        # Arrange
        created = await create_key(uow, tenancy.staff_id)
        received = await share_key(uow, tenancy.staff_id, created.self_share_id, "user", tenancy.individual_id)
        individual = await get_principal(uow, tenancy.individual_id)

        # Act & Assert
        with pytest.raises(ForbiddenError):
            await DefaultKeyService(uow).set_default_api_key(individual, received)

    @pytest.mark.asyncio
    async def test_unknown_share(self, uow, tenancy):
        """Unknown shares are not found."""
        # Arrange
        owner = await get_principal(uow, tenancy.individual_id)

        # Act & Assert
        with pytest.raises(NotFoundError):
            await DefaultKeyService(uow).set_default_api_key(owner, uuid.uuid4())


class TestPromoteNextDefault:
    """Test promotion after the default disappears."""

    @pytest.mark.asyncio
    async def test_noop_while_default_exists(self, uow, tenancy):
        """Nothing is promoted while a default exists."""
        # Arrange
        await create_key(uow, tenancy.individual_id)

        # Act
        promoted = await DefaultKeyService(uow).promote_next_default(tenancy.individual_id)

        # Assert
        assert promoted is None
        assert await uow.api_keys.count_defaults(tenancy.individual_id) == 1

    @pytest.mark.asyncio
    async def test_promotes_oldest(self, uow, tenancy):
        """Without a default the oldest self-shared key is promoted."""
        # Arrange
        first = await create_key(uow, tenancy.individual_id)
        await create_key(uow, tenancy.individual_id)
        await uow.api_keys.clear_default(tenancy.individual_id)
        await uow.commit()

        # Act
        promoted = await DefaultKeyService(uow).promote_next_default(tenancy.individual_id)

        # Assert
        assert promoted == first.api_key.id
        assert (await uow.users.get(tenancy.individual_id)).default_api_key_share_id == first.self_share_id

    @pytest.mark.asyncio
    async def test_clears_pointer_without_keys(self, uow, tenancy):
        """A user without keys ends up with no default pointer."""
        # Act
        promoted = await DefaultKeyService(uow).promote_next_default(tenancy.individual_id)

        # Assert
        assert promoted is None
        assert (await uow.users.get(tenancy.individual_id)).default_api_key_share_id is None
