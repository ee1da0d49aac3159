"""
Authentication services.

This module maps verified external identities to internal users and exposes
the user directory:

- IdentityService: resolve the caller, create-or-update on login, profile
  patches, current user lookups
- UserDirectoryService: offset-paginated, search-filtered user listing

Every entry point takes the transport-level identity (ExternalIdentity or
None) and re-derives the internal user from it. Client-supplied ids are
only ever compared against that result.

Related files:
    - backends.py: Token verification producing ExternalIdentity
    - models.py: User
    - chat/authorization.py: Conversation-scoped guard built on resolve_user

Error Handling:
    Mutations return ServiceResult failures (UNAUTHENTICATED, UNAUTHORIZED).
    Queries fail soft and return None or an empty page.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.db.models import Q

from authentication.models import User
from chat.events import DIRECTORY_TOPIC, publish_change
from core.helpers import clamp_limit
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from authentication.backends import ExternalIdentity

logger = logging.getLogger(__name__)


class DIRECTORY_CONFIG:
    """User directory pagination settings."""

    DEFAULT_LIMIT = 15
    MAX_LIMIT = 100


class IdentityService(BaseService):
    """
    Identity bridge between the identity provider and internal users.

    Usage:
        from authentication.services import IdentityService

        # On every sign-in (client calls this once the provider session exists)
        result = IdentityService.create_or_get_user(
            identity,
            external_id=identity.subject,
            email="ada@example.com",
            name="Ada",
        )

        # Inside other services
        user = IdentityService.resolve_user(identity)
        if user is None:
            return ServiceResult.failure("Authentication required", "UNAUTHENTICATED")
    """

    @staticmethod
    def resolve_user(identity: ExternalIdentity | None) -> User | None:
        """
        Resolve the internal user for a verified identity.

        Returns None when there is no identity or the identity has not
        been synced into a User row yet.
        """
        if identity is None or not getattr(identity, "subject", None):
            return None
        return User.objects.filter(external_id=identity.subject, is_active=True).first()

    @classmethod
    def create_or_get_user(
        cls,
        identity: ExternalIdentity | None,
        external_id: str,
        email: str,
        name: str,
        avatar: str | None = None,
    ) -> ServiceResult[User]:
        """
        Create the user on first login, or sync profile fields that diverged.

        Args:
            identity: Verified caller identity
            external_id: Provider subject; must equal the caller's subject
            email: Email from the provider
            name: Display name from the provider
            avatar: Avatar URL from the provider

        Returns:
            ServiceResult with the User
        """
        if identity is None:
            return ServiceResult.failure("Authentication required", "UNAUTHENTICATED")
        validation = cls.validate_required(external_id=external_id)
        if validation:
            return validation
        if identity.subject != external_id:
            logger.warning(
                f"Identity {identity.subject} tried to sync user {external_id}"
            )
            return ServiceResult.failure(
                "Cannot sync another user's profile", "UNAUTHORIZED"
            )

        profile = {"email": email or "", "name": name or "", "avatar_url": avatar or ""}

        user = User.objects.filter(external_id=external_id).first()
        if user is None:
            try:
                with cls.atomic():
                    user = User.objects.create_user(external_id=external_id, **profile)
                    publish_change([DIRECTORY_TOPIC])
                cls.get_logger().info(f"Created user {user.id} for {external_id}")
                return ServiceResult.success(user)
            except IntegrityError:
                # Concurrent first login created the row
                user = User.objects.get(external_id=external_id)

        changed = [
            field for field, value in profile.items()
            if value and getattr(user, field) != value
        ]
        if changed:
            for field in changed:
                setattr(user, field, profile[field])
            user.save(update_fields=[*changed, "updated_at"])
            publish_change([DIRECTORY_TOPIC])
            cls.get_logger().info(f"Synced {changed} for user {user.id}")

        return ServiceResult.success(user)

    @classmethod
    def update_user_by_external_id(
        cls,
        identity: ExternalIdentity | None,
        external_id: str,
        name: str | None = None,
        avatar: str | None = None,
    ) -> ServiceResult[User | None]:
        """
        Patch name and/or avatar of the caller's user record.

        Empty values are ignored. Returns success(None) when no user exists
        for the external id.
        """
        if identity is None:
            return ServiceResult.failure("Authentication required", "UNAUTHENTICATED")
        if identity.subject != external_id:
            return ServiceResult.failure(
                "Cannot update another user's profile", "UNAUTHORIZED"
            )

        user = User.objects.filter(external_id=external_id).first()
        if user is None:
            return ServiceResult.success(None)

        update_fields = []
        if name:
            user.name = name
            update_fields.append("name")
        if avatar:
            user.avatar_url = avatar
            update_fields.append("avatar_url")

        if update_fields:
            user.save(update_fields=[*update_fields, "updated_at"])
            publish_change([DIRECTORY_TOPIC])
            cls.get_logger().info(f"Updated {update_fields} for user {user.id}")

        return ServiceResult.success(user)

    @classmethod
    def get_current_user(
        cls,
        identity: ExternalIdentity | None,
        external_id: str | None = None,
    ) -> User | None:
        """
        Return the caller's user record.

        When external_id is given it must match the caller; otherwise None.
        """
        if identity is None:
            return None
        if external_id and external_id != identity.subject:
            return None
        return cls.resolve_user(identity)

    @classmethod
    def get_user_by_id(
        cls,
        identity: ExternalIdentity | None,
        user_id: int,
    ) -> User | None:
        """Look up any active user by internal id (authenticated callers only)."""
        if cls.resolve_user(identity) is None:
            return None
        return User.objects.filter(pk=user_id, is_active=True).first()


class UserDirectoryService(BaseService):
    """
    Searchable user directory with offset pagination.

    The cursor is a plain integer offset into the (name, id) ordered result;
    directory-sized lists do not need a stable watermark.
    """

    @classmethod
    def search_users(
        cls,
        identity: ExternalIdentity | None,
        search: str | None = None,
        cursor: int | None = None,
        limit: int | None = None,
    ) -> dict:
        """
        Search users by name or email, excluding the caller.

        Args:
            identity: Verified caller identity
            search: Case-insensitive substring matched against name and email
            cursor: Offset returned as next_cursor by the previous page
            limit: Page size (default 15, capped at 100)

        Returns:
            {"users": [User, ...], "next_cursor": int | None}
        """
        empty = {"users": [], "next_cursor": None}

        caller = IdentityService.resolve_user(identity)
        if caller is None:
            return empty

        limit = clamp_limit(limit, DIRECTORY_CONFIG.DEFAULT_LIMIT, DIRECTORY_CONFIG.MAX_LIMIT)
        offset = max(cursor or 0, 0)

        queryset = User.objects.filter(is_active=True).exclude(pk=caller.pk)
        if search and search.strip():
            term = search.strip()
            queryset = queryset.filter(Q(name__icontains=term) | Q(email__icontains=term))

        page = list(queryset.order_by("name", "id")[offset:offset + limit + 1])
        has_more = len(page) > limit

        return {
            "users": page[:limit],
            "next_cursor": offset + limit if has_more else None,
        }
