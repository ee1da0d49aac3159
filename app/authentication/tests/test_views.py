"""
Tests for the identity bridge and directory endpoints.

Covers:
- POST /api/v1/users/sync/
- GET/PATCH /api/v1/users/me/
- GET /api/v1/users/search/
- GET /api/v1/users/{id}/
"""

from rest_framework import status
from rest_framework.test import APIClient

from authentication.models import User

SYNC_URL = "/api/v1/users/sync/"
ME_URL = "/api/v1/users/me/"
SEARCH_URL = "/api/v1/users/search/"


class TestIdentitySyncView:
    def test_first_sync_creates_user_from_token_claims(self, unsynced_identity, db):
        client = APIClient()
        client.force_authenticate(user=unsynced_identity)

        response = client.post(SYNC_URL, {}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["external_id"] == "user_new"
        assert response.data["name"] == "New Person"
        assert response.data["avatar"] == "https://img.example.com/new.png"
        assert User.objects.filter(external_id="user_new").exists()

    def test_repeat_sync_returns_200(self, user_client, user):
        response = user_client.post(SYNC_URL, {"name": "Ada L."}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["id"] == user.pk
        assert response.data["name"] == "Ada L."

    def test_unauthenticated_sync_is_401(self, api_client, db):
        response = api_client.post(SYNC_URL, {"external_id": "user_x"}, format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data["error_code"] == "UNAUTHENTICATED"

    def test_syncing_another_subject_is_403(self, user_client, other_user):
        response = user_client.post(
            SYNC_URL, {"external_id": other_user.external_id}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "UNAUTHORIZED"


class TestCurrentUserView:
    def test_get_me(self, user_client, user):
        response = user_client.get(ME_URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["id"] == user.pk
        assert response.data["email"] == "ada@example.com"

    def test_get_me_unauthenticated_is_null(self, api_client, db):
        """
        Why it matters: Queries fail soft so the UI can render while the
        session is still loading.
        """
        response = api_client.get(ME_URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.data is None

    def test_patch_me(self, user_client, user):
        response = user_client.patch(ME_URL, {"name": "Augusta Ada"}, format="json")

        assert response.status_code == status.HTTP_200_OK
        user.refresh_from_db()
        assert user.name == "Augusta Ada"

    def test_patch_me_unauthenticated_is_401(self, api_client, db):
        response = api_client.patch(ME_URL, {"name": "X"}, format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestUserSearchView:
    def test_search(self, user_client, other_user):
        response = user_client.get(SEARCH_URL, {"search": "grace"})

        assert response.status_code == status.HTTP_200_OK
        assert [u["id"] for u in response.data["users"]] == [other_user.pk]
        assert response.data["next_cursor"] is None

    def test_unauthenticated_search_is_empty(self, api_client, other_user):
        response = api_client.get(SEARCH_URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["users"] == []


class TestUserDetailView:
    def test_get_user(self, user_client, other_user):
        response = user_client.get(f"/api/v1/users/{other_user.pk}/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["name"] == "Grace Hopper"

    def test_missing_user_is_null(self, user_client):
        response = user_client.get("/api/v1/users/999999/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data is None
