"""
Tests for resolving the key a game session bills against.
"""
import pytest

from app.core.exceptions import ErrorKind, NoApiKeyError
from app.services.api_keys import SessionKeyResolver
from tests.fixtures.tenancy import create_game, create_key, get_principal, share_key


class TestSessionKeyPriority:
    """Test the fixed resolution priority."""

    @pytest.mark.asyncio
    async def test_no_key_available(self, uow, tenancy):
        """Without any source the resolver reports that no key is available."""
        # Arrange
        game_id = await create_game(uow, tenancy.head_id, public=True)
        individual = await get_principal(uow, tenancy.individual_id)

        # Act & Assert
        with pytest.raises(NoApiKeyError) as exc_info:
            await SessionKeyResolver(uow).resolve_api_key_for_session(individual, game_id)
        assert exc_info.value.kind == ErrorKind.NO_API_KEY

    @pytest.mark.asyncio
    async def test_priority_order(self, uow, tenancy):
        """Each source wins over every source below it."""
        # Arrange
        await uow.roles.replace(
            tenancy.staff_id, "staff", institution_id=tenancy.institution_id, workshop_id=tenancy.workshop_id
        )
        await uow.commit()
        game_id = await create_game(uow, tenancy.head_id, public=True)

        personal = await create_key(uow, tenancy.staff_id, name="personal")
        system = await create_key(uow, tenancy.admin_id, name="system")
        pooled = await create_key(uow, tenancy.head_id, name="pooled")
        institution_share = await share_key(
            uow, tenancy.head_id, pooled.self_share_id, "institution", tenancy.institution_id
        )
        private = await create_key(uow, tenancy.head_id, name="private")
        public = await create_key(uow, tenancy.head_id, name="public")
        workshop = await create_key(uow, tenancy.head_id, name="workshop")
        workshop_share = await share_key(
            uow, tenancy.head_id, workshop.self_share_id, "workshop", tenancy.workshop_id
        )

        settings_row = await uow.system_settings.get_or_create()
        await uow.system_settings.update(settings_row.id, {"free_use_api_key_id": system.api_key.id})
        await uow.institutions.update(tenancy.institution_id, {"free_use_api_key_share_id": institution_share})
        await uow.games.update(game_id, {
            "public_sponsored_api_key_share_id": public.self_share_id,
            "private_share_hash": "tok",
            "private_sponsored_api_key_share_id": private.self_share_id,
        })
        await uow.workshops.update(tenancy.workshop_id, {"default_api_key_share_id": workshop_share})
        await uow.commit()

        staff = await get_principal(uow, tenancy.staff_id)
        resolver = SessionKeyResolver(uow)

        async def resolve():
            return await resolver.resolve_api_key_for_session(staff, game_id, share_token="tok")

        # Act & Assert
        resolved = await resolve()
        assert (resolved.source, resolved.api_key_id) == ("workshop", workshop.api_key.id)

        await uow.workshops.update(tenancy.workshop_id, {"default_api_key_share_id": None})
        resolved = await resolve()
        assert (resolved.source, resolved.api_key_id) == ("sponsor", public.api_key.id)

        await uow.shares.update(public.self_share_id, {"allow_public_game_sponsoring": False})
        resolved = await resolve()
        assert (resolved.source, resolved.api_key_id) == ("private_sponsor", private.api_key.id)
        without_token = await resolver.resolve_api_key_for_session(staff, game_id)
        assert without_token.source == "institution"

        await uow.games.update(game_id, {"private_share_remaining": 0})
        resolved = await resolve()
        assert (resolved.source, resolved.api_key_id) == ("institution", pooled.api_key.id)

        await uow.institutions.update(tenancy.institution_id, {"free_use_api_key_share_id": None})
        resolved = await resolve()
        assert (resolved.source, resolved.api_key_id) == ("system", system.api_key.id)
        assert resolved.share_id is None

        await uow.system_settings.update(settings_row.id, {"free_use_api_key_id": None})
        resolved = await resolve()
        assert (resolved.source, resolved.api_key_id) == ("personal", personal.api_key.id)
        assert resolved.share_id == personal.self_share_id

    @pytest.mark.asyncio
    async def test_participant_limited_to_workshop_key(self, uow, tenancy):
        """Participants never fall back to sponsors or free-use keys."""
        # Arrange
        game_id = await create_game(uow, tenancy.head_id, public=True)
        sponsor = await create_key(uow, tenancy.head_id)
        await uow.games.update(game_id, {"public_sponsored_api_key_share_id": sponsor.self_share_id})
        await uow.commit()
        participant = await get_principal(uow, tenancy.participant_id)
        resolver = SessionKeyResolver(uow)

        # Act
        status = await resolver.api_key_status(participant, game_id)

        # Assert
        assert status.available is False
        assert await resolver.is_api_key_available(participant, game_id) is False

    @pytest.mark.asyncio
    async def test_status_reports_source(self, uow, tenancy):
        """The status names the source that would pay."""
        # Arrange
        game_id = await create_game(uow, tenancy.head_id, public=True)
        await create_key(uow, tenancy.individual_id)
        individual = await get_principal(uow, tenancy.individual_id)

        # Act
        status = await SessionKeyResolver(uow).api_key_status(individual, game_id)

        # Assert
        assert status.available is True
        assert status.source == "personal"
