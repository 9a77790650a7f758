"""
HTTP tests for the API surface.

Covers authentication, the error envelope and a few representative
key-management flows end to end.
"""
import uuid

import pytest

from tests.fixtures.tenancy import create_game


class TestHealth:
    """Test health endpoints."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        """The health endpoint needs no authentication."""
        # Act
        response = await client.get("/api/v1/health")

        # Assert
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAuthentication:
    """Test bearer token handling."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        """Protected routes answer 401 with a bearer challenge."""
        # Act
        response = await client.get("/api/v1/users/me")

        # Assert
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"]["code"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        """Tokens that do not decode are rejected."""
        # Act
        response = await client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"})

        # Assert
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_unknown_user(self, client, auth_headers):
        """A valid token for a user that does not exist is rejected."""
        # Act
        response = await client.get("/api/v1/users/me", headers=auth_headers(uuid.uuid4()))

        # Assert
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me(self, client, tenancy, auth_headers):
        """The current user is returned with their role."""
        # Act
        response = await client.get("/api/v1/users/me", headers=auth_headers(tenancy.staff_id))

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == str(tenancy.staff_id)
        assert body["role"]["role"] == "staff"
        assert body["role"]["institution_id"] == str(tenancy.institution_id)


class TestUsersApi:
    """Test user registration."""

    @pytest.mark.asyncio
    async def test_register(self, client, auth_headers):
        """Anyone can register; the new user is an individual."""
        # Act
        response = await client.post("/api/v1/users", json={"name": "Rita", "email": "rita@example.org"})

        # Assert
        assert response.status_code == 201
        user_id = response.json()["id"]
        me = await client.get("/api/v1/users/me", headers=auth_headers(user_id))
        assert me.json()["role"]["role"] == "individual"

    @pytest.mark.asyncio
    async def test_invalid_payload(self, client):
        """Unparseable payloads use the invalid input envelope."""
        # Act
        response = await client.post("/api/v1/users", json={"email": "nobody@example.org"})

        # Assert
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "invalid_input"
        assert error["details"]["errors"]


class TestApiKeysApi:
    """Test key management over HTTP."""

    @pytest.mark.asyncio
    async def test_create_and_list(self, client, tenancy, auth_headers):
        """A created key is listed with its secret shortened."""
        # Arrange
        headers = auth_headers(tenancy.individual_id)

        # Act
        created = await client.post(
            "/api/v1/apikeys/new",
            json={"platform": "openai", "key": "sk-abcdefghijkl"},
            headers=headers,
        )
        listed = await client.get("/api/v1/apikeys", headers=headers)

        # Assert
        assert created.status_code == 201
        body = created.json()
        assert body["api_key"]["is_default"] is True
        assert body["api_key"]["key_shortened"] == "sk-abc..."
        assert "key" not in body["api_key"]
        shares = listed.json()
        assert [share["id"] for share in shares] == [body["self_share_id"]]
        assert shares[0]["target"] == {"kind": "user", "id": str(tenancy.individual_id)}
        assert shares[0]["is_user_default"] is True

    @pytest.mark.asyncio
    async def test_unknown_platform(self, client, tenancy, auth_headers):
        """Unknown platforms are rejected with their own error code."""
        # Act
        response = await client.post(
            "/api/v1/apikeys/new",
            json={"platform": "skynet", "key": "sk-abcdefghijkl"},
            headers=auth_headers(tenancy.individual_id),
        )

        # Assert
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_platform"

    @pytest.mark.asyncio
    async def test_share_with_user(self, client, tenancy, auth_headers):
        """A shared key shows up for the target user."""
        # Arrange
        created = await client.post(
            "/api/v1/apikeys/new",
            json={"platform": "mistral", "key": "mk-0123456789"},
            headers=auth_headers(tenancy.staff_id),
        )
        self_share_id = created.json()["self_share_id"]

        # Act
        shared = await client.post(
            f"/api/v1/apikeys/{self_share_id}/shares",
            json={"target": {"kind": "user", "id": str(tenancy.individual_id)}},
            headers=auth_headers(tenancy.staff_id),
        )
        listed = await client.get("/api/v1/apikeys", headers=auth_headers(tenancy.individual_id))

        # Assert
        assert shared.status_code == 201
        assert [share["id"] for share in listed.json()] == [shared.json()["id"]]

    @pytest.mark.asyncio
    async def test_unknown_share(self, client, tenancy, auth_headers):
        """Unknown shares are not found."""
        # Act
        response = await client.get(
            f"/api/v1/apikeys/{uuid.uuid4()}", headers=auth_headers(tenancy.individual_id)
        )

        # Assert
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"


class TestGamesApi:
    """Test game endpoints."""

    @pytest.mark.asyncio
    async def test_anonymous_available_keys(self, client, uow, tenancy):
        """Anonymous callers get an empty list for an unsponsored public game."""
        # Arrange
        game_id = await create_game(uow, tenancy.head_id, public=True)

        # Act
        response = await client.get(f"/api/v1/games/{game_id}/available-keys")

        # Assert
        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_session_without_key(self, client, uow, tenancy, auth_headers):
        """Starting a session without any key reports no_api_key."""
        # Arrange
        game_id = await create_game(uow, tenancy.head_id, public=True)

        # Act
        response = await client.post(
            f"/api/v1/games/{game_id}/sessions",
            json={},
            headers=auth_headers(tenancy.individual_id),
        )

        # Assert
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "no_api_key"


class TestInstitutionsApi:
    """Test institution endpoints."""

    @pytest.mark.asyncio
    async def test_last_head_conflict(self, client, tenancy, auth_headers):
        """Removing the last head answers 409."""
        # Act
        response = await client.delete(
            f"/api/v1/institutions/{tenancy.institution_id}/members/{tenancy.head_id}",
            headers=auth_headers(tenancy.admin_id),
        )

        # Assert
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "last_head"

    @pytest.mark.asyncio
    async def test_staff_cannot_list_other_institution(self, client, tenancy, auth_headers):
        """Members of one institution cannot see another's members."""
        # Act
        response = await client.get(
            f"/api/v1/institutions/{tenancy.other_institution_id}/members",
            headers=auth_headers(tenancy.staff_id),
        )

        # Assert
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "forbidden"

