"""
Tests for the identity bridge and user directory services.

This module tests:
- IdentityService: resolve, create-or-update on login, profile patches,
  current user and by-id lookups
- UserDirectoryService: search, caller exclusion, offset pagination

Test Organization:
    - Each service method has its own test class
    - Tests use descriptive names following: test_<scenario>_<expected_outcome>
"""

import pytest

from authentication.backends import ExternalIdentity
from authentication.models import User
from authentication.services import IdentityService, UserDirectoryService
from authentication.tests.factories import UserFactory, identity_for


# =============================================================================
# IdentityService.resolve_user
# =============================================================================


class TestResolveUser:
    def test_resolves_synced_identity(self, user, identity):
        assert IdentityService.resolve_user(identity) == user

    def test_none_identity_resolves_to_none(self, db):
        assert IdentityService.resolve_user(None) is None

    def test_unsynced_identity_resolves_to_none(self, unsynced_identity, db):
        """
        A verified token without a user row is not a caller yet.

        Why it matters: Every chat guard builds on this lookup; a missing
        row must read as unauthenticated rather than crash.
        """
        assert IdentityService.resolve_user(unsynced_identity) is None

    def test_inactive_user_does_not_resolve(self, db):
        user = UserFactory(is_active=False)

        assert IdentityService.resolve_user(identity_for(user)) is None


# =============================================================================
# IdentityService.create_or_get_user
# =============================================================================


class TestCreateOrGetUser:
    def test_creates_user_on_first_login(self, unsynced_identity):
        result = IdentityService.create_or_get_user(
            unsynced_identity,
            external_id="user_new",
            email="new@example.com",
            name="New Person",
            avatar="https://img.example.com/new.png",
        )

        assert result.success is True
        user = result.data
        assert user.external_id == "user_new"
        assert user.email == "new@example.com"
        assert user.name == "New Person"
        assert user.avatar_url == "https://img.example.com/new.png"
        assert user.has_usable_password() is False

    def test_second_login_returns_same_user(self, unsynced_identity):
        """
        Why it matters: Clients call this on every sign-in; it must never
        create a second row for the same subject.
        """
        first = IdentityService.create_or_get_user(
            unsynced_identity, "user_new", "new@example.com", "New Person"
        )
        second = IdentityService.create_or_get_user(
            unsynced_identity, "user_new", "new@example.com", "New Person"
        )

        assert first.data.pk == second.data.pk
        assert User.objects.filter(external_id="user_new").count() == 1

    def test_syncs_diverged_profile_fields(self, user, identity):
        result = IdentityService.create_or_get_user(
            identity,
            external_id=user.external_id,
            email="ada@newmail.example.com",
            name="Ada King",
        )

        assert result.success is True
        user.refresh_from_db()
        assert user.email == "ada@newmail.example.com"
        assert user.name == "Ada King"

    def test_empty_provider_values_do_not_blank_existing_fields(self, user, identity):
        IdentityService.create_or_get_user(identity, user.external_id, "", "")

        user.refresh_from_db()
        assert user.email == "ada@example.com"
        assert user.name == "Ada Lovelace"

    def test_rejects_unauthenticated(self, db):
        result = IdentityService.create_or_get_user(None, "user_x", "x@example.com", "X")

        assert result.success is False
        assert result.error_code == "UNAUTHENTICATED"

    def test_rejects_syncing_another_subject(self, identity, other_user):
        """
        Why it matters: The external id in the body is client-supplied; only
        the token's subject decides whose record is written.
        """
        result = IdentityService.create_or_get_user(
            identity, other_user.external_id, "evil@example.com", "Evil"
        )

        assert result.success is False
        assert result.error_code == "UNAUTHORIZED"
        other_user.refresh_from_db()
        assert other_user.name == "Grace Hopper"

    def test_blank_external_id_is_a_validation_error(self, identity):
        result = IdentityService.create_or_get_user(identity, "", "a@example.com", "A")

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"
        assert "external_id" in result.errors


# =============================================================================
# IdentityService.update_user_by_external_id
# =============================================================================


class TestUpdateUserByExternalId:
    def test_updates_name_and_avatar(self, user, identity):
        result = IdentityService.update_user_by_external_id(
            identity,
            user.external_id,
            name="Countess Ada",
            avatar="https://img.example.com/ada.png",
        )

        assert result.success is True
        user.refresh_from_db()
        assert user.name == "Countess Ada"
        assert user.avatar_url == "https://img.example.com/ada.png"

    def test_only_provided_fields_change(self, user, identity):
        IdentityService.update_user_by_external_id(identity, user.external_id, name="Ada K")

        user.refresh_from_db()
        assert user.name == "Ada K"
        assert user.email == "ada@example.com"

    def test_returns_none_when_user_missing(self, unsynced_identity, db):
        result = IdentityService.update_user_by_external_id(
            unsynced_identity, "user_new", name="Someone"
        )

        assert result.success is True
        assert result.data is None

    def test_rejects_other_subject(self, identity, other_user):
        result = IdentityService.update_user_by_external_id(
            identity, other_user.external_id, name="Hijacked"
        )

        assert result.error_code == "UNAUTHORIZED"


# =============================================================================
# IdentityService queries
# =============================================================================


class TestCurrentUserQueries:
    def test_get_current_user(self, user, identity):
        assert IdentityService.get_current_user(identity) == user

    def test_get_current_user_is_none_when_unauthenticated(self, db):
        assert IdentityService.get_current_user(None) is None

    def test_get_current_user_with_mismatched_external_id_is_none(self, identity):
        assert IdentityService.get_current_user(identity, "someone_else") is None

    def test_get_user_by_id(self, identity, other_user):
        assert IdentityService.get_user_by_id(identity, other_user.pk) == other_user

    def test_get_user_by_id_unauthenticated_is_none(self, other_user):
        assert IdentityService.get_user_by_id(None, other_user.pk) is None


# =============================================================================
# UserDirectoryService.search_users
# =============================================================================


class TestSearchUsers:
    def test_excludes_caller(self, user, identity, other_user):
        page = UserDirectoryService.search_users(identity)

        assert user not in page["users"]
        assert other_user in page["users"]

    def test_matches_name_or_email_case_insensitively(self, identity, other_user):
        by_name = UserDirectoryService.search_users(identity, search="gRaCe")
        by_email = UserDirectoryService.search_users(identity, search="GRACE@EXAMPLE")
        no_match = UserDirectoryService.search_users(identity, search="nobody")

        assert by_name["users"] == [other_user]
        assert by_email["users"] == [other_user]
        assert no_match["users"] == []

    def test_offset_pagination_walks_all_users_once(self, identity):
        """
        Why it matters: next_cursor must chain pages without repeats and
        end with None.
        """
        created = [UserFactory(name=f"Member {i:02d}") for i in range(7)]

        seen = []
        cursor = None
        while True:
            page = UserDirectoryService.search_users(
                identity, search="Member", cursor=cursor, limit=3
            )
            seen.extend(page["users"])
            cursor = page["next_cursor"]
            if cursor is None:
                break

        assert [u.pk for u in seen] == [u.pk for u in created]

    def test_unauthenticated_gets_empty_page(self, other_user):
        assert UserDirectoryService.search_users(None) == {"users": [], "next_cursor": None}

    def test_unsynced_identity_gets_empty_page(self, other_user):
        identity = ExternalIdentity(subject="not_synced")

        assert UserDirectoryService.search_users(identity)["users"] == []

    @pytest.mark.parametrize("limit", [-5, 0])
    def test_out_of_range_limit_is_clamped(self, identity, other_user, limit):
        page = UserDirectoryService.search_users(identity, limit=limit)

        assert page["users"] == [other_user]
        assert page["next_cursor"] is None
