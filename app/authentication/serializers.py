"""
Serializers for the identity bridge and user directory.

This module provides DRF serializers for:
- User model (read operations, embedded in chat payloads)
- Identity sync and profile update requests
- User directory search parameters and pages

Related files:
    - models.py: User model
    - views.py: Views that use these serializers
    - chat/serializers.py: Embeds UserSerializer in conversation payloads
"""

from rest_framework import serializers

from authentication.models import User
from authentication.services import DIRECTORY_CONFIG


class UserSerializer(serializers.ModelSerializer):
    """
    Public user record.

    ``avatar`` mirrors the field name clients send on sync.
    """

    avatar = serializers.CharField(source="avatar_url", read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "external_id",
            "email",
            "name",
            "avatar",
        ]
        read_only_fields = fields


class IdentitySyncSerializer(serializers.Serializer):
    """
    Request body for create-or-get on login.

    Missing fields fall back to the claims carried by the identity token.
    """

    external_id = serializers.CharField(max_length=255, required=False)
    email = serializers.EmailField(required=False, allow_blank=True)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    avatar = serializers.URLField(max_length=1024, required=False, allow_blank=True)


class ProfileUpdateSerializer(serializers.Serializer):
    """Partial profile update; blank values are ignored by the service."""

    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    avatar = serializers.URLField(max_length=1024, required=False, allow_blank=True)


class UserSearchParamsSerializer(serializers.Serializer):
    """Query parameters for the directory search endpoint."""

    search = serializers.CharField(required=False, allow_blank=True)
    cursor = serializers.IntegerField(required=False, min_value=0)
    limit = serializers.IntegerField(
        required=False, min_value=1, max_value=DIRECTORY_CONFIG.MAX_LIMIT
    )


class UserPageSerializer(serializers.Serializer):
    """A page of directory results."""

    users = UserSerializer(many=True)
    next_cursor = serializers.IntegerField(allow_null=True)
