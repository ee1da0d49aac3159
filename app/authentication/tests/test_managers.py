"""
Tests for UserManager.

The manager creates users keyed by the identity provider's subject:
- create_user(): regular users without a usable password
- create_superuser(): admin-site accounts with a password
"""

import pytest

from authentication.models import User


class TestUserManagerCreateUser:
    def test_creates_user_with_external_id(self, db):
        user = User.objects.create_user(
            external_id="user_abc", email="Ada@EXAMPLE.com", name="Ada"
        )

        assert user.external_id == "user_abc"
        assert user.email == "Ada@example.com"
        assert user.name == "Ada"
        assert user.is_active is True
        assert user.is_staff is False
        assert user.has_usable_password() is False

    def test_requires_external_id(self, db):
        with pytest.raises(ValueError):
            User.objects.create_user(external_id="", email="a@example.com")

    def test_email_is_optional(self, db):
        user = User.objects.create_user(external_id="user_no_email")

        assert user.email == ""


class TestUserManagerCreateSuperuser:
    def test_creates_superuser_with_password(self, db):
        admin = User.objects.create_superuser(
            external_id="ops-admin", email="ops@example.com", password="adminpassword"
        )

        assert admin.is_staff is True
        assert admin.is_superuser is True
        assert admin.check_password("adminpassword") is True

    def test_rejects_non_staff_superuser(self, db):
        with pytest.raises(ValueError):
            User.objects.create_superuser(
                external_id="ops-admin", password="x", is_staff=False
            )
