"""
Authentication models.

This module defines the internal user record that mirrors an account held by
the external identity provider:
- User: one row per provider account, keyed by the provider's stable subject

Related files:
    - managers.py: Custom user manager for external-id based creation
    - backends.py: Identity token verification (request.user is the identity,
      not this model)
    - services.py: IdentityService (create-or-update on login), UserDirectoryService

Security:
    - Users never sign in with a local password; the manager sets an
      unusable one. Staff accounts for the admin site are the exception.
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Internal user record linked to an external identity.

    Created on first login and updated whenever the profile attributes
    reported by the identity provider diverge from what is stored here.

    Fields:
        external_id: Provider subject claim, unique, used as USERNAME_FIELD
        email: Email address reported by the provider
        name: Display name
        avatar_url: Profile image URL
        is_active: Whether the account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the row was created
        updated_at: When the row was last modified

    Usage:
        user = User.objects.create_user(
            external_id="user_2abc",
            email="ada@example.com",
            name="Ada Lovelace",
        )
    """

    external_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stable user id issued by the identity provider",
    )
    email = models.EmailField(
        max_length=254,
        blank=True,
        db_index=True,
        help_text="Email address reported by the identity provider",
    )
    name = models.CharField(
        max_length=255,
        blank=True,
        db_index=True,
        help_text="Display name",
    )
    avatar_url = models.URLField(
        max_length=1024,
        blank=True,
        help_text="Profile image URL",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "external_id"
    EMAIL_FIELD = "email"
    REQUIRED_FIELDS = ["email"]

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["name", "id"]

    def __str__(self):
        return self.name or self.email or self.external_id

    def get_full_name(self):
        return self.name or self.email

    def get_short_name(self):
        if self.name:
            return self.name.split()[0]
        return self.email.split("@")[0]
