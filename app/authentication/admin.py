"""
Django admin configuration for users.

Users are provisioned by the identity provider sync; the admin is for
inspection and deactivation.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from authentication.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin configuration for identity-provider backed users."""

    list_display = (
        "external_id",
        "name",
        "email",
        "is_active",
        "is_staff",
        "date_joined",
    )
    list_filter = ("is_active", "is_staff", "is_superuser", "date_joined")
    search_fields = ("external_id", "email", "name")
    ordering = ("name", "id")

    fieldsets = (
        (None, {"fields": ("external_id", "password")}),
        ("Profile", {"fields": ("name", "email", "avatar_url")}),
        ("Status", {"fields": ("is_active", "is_staff", "is_superuser")}),
        ("Permissions", {"fields": ("groups", "user_permissions")}),
        ("Important dates", {"fields": ("date_joined", "updated_at", "last_login")}),
    )

    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("external_id", "email", "password1", "password2"),
            },
        ),
    )

    readonly_fields = ("date_joined", "updated_at", "last_login")
