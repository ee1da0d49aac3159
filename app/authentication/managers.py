"""
Custom user manager for identity-provider backed accounts.

Users are keyed by the provider's subject (external_id). Regular users never
have a usable password; superusers created for the admin site do.

Related files:
    - models.py: User model that uses this manager
"""

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    """
    Manager for the User model keyed by external identity id.

    Usage:
        user = User.objects.create_user(
            external_id="user_2abc",
            email="ada@example.com",
            name="Ada",
        )

        admin = User.objects.create_superuser(
            external_id="ops-admin",
            email="ops@example.com",
            password="adminpassword",
        )
    """

    def create_user(self, external_id, email="", password=None, **extra_fields):
        """
        Create and save a user for the given external identity.

        Args:
            external_id: Provider subject (required)
            email: Email reported by the provider
            password: Only used for staff accounts
            **extra_fields: name, avatar_url, flags

        Raises:
            ValueError: If external_id is not provided
        """
        if not external_id:
            raise ValueError("The external_id field must be set")

        email = self.normalize_email(email) if email else ""

        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)

        user = self.model(external_id=external_id, email=email, **extra_fields)

        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        user.save(using=self._db)
        return user

    def create_superuser(self, external_id, email="", password=None, **extra_fields):
        """
        Create and save a superuser for the admin site.

        Raises:
            ValueError: If is_staff or is_superuser is not True
        """
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")

        return self.create_user(external_id, email, password, **extra_fields)
