"""
Serializers for chat API.

This module provides serializers for the messaging core:
- Conversation serializers (list entry, detail, create requests)
- Message serializers (read, send, page)
- Reaction, typing and presence payloads

Serializer Hierarchy:
    ConversationSerializer: Conversation with member users
    ConversationListItemSerializer: Adds latest message and unread count
    ConversationPageSerializer: {conversations, next_cursor}
    DirectConversationCreateSerializer: Open a direct conversation
    GroupCreateSerializer: Create a group
    GroupMembersSerializer: Add members to a group

    MessageSerializer: Message with deleted content hidden
    MessageCreateSerializer: Send new message
    MessagePageSerializer: {messages, continue_cursor}

    ReactionGroupSerializer: {emoji, count, user_ids}
    ReactionToggleSerializer: Toggle request
    PresenceSerializer: {online, last_seen}

Design Decisions:
    - Read and write serializers are separate for clarity
    - Deleted message content is never serialized (null), the row keeps it
    - Services attach computed attributes (member_users, latest_message,
      unread_count); serializers only read them
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSerializer
from chat.constants import (
    CONVERSATION_CONFIG,
    GROUP_CONFIG,
    MESSAGE_CONFIG,
    REACTION_CONFIG,
)
from chat.models import Conversation, Message


# =============================================================================
# Message Serializers
# =============================================================================


class MessageSerializer(serializers.ModelSerializer):
    """
    Message for display.

    Deleted messages keep their row but serialize ``content`` as null so
    clients render a "deleted" placeholder and hide reaction affordances.
    """

    conversation_id = serializers.IntegerField(read_only=True)
    sender = UserSerializer(read_only=True)
    content = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender",
            "content",
            "deleted",
            "status",
            "created_at",
        ]
        read_only_fields = fields

    def get_content(self, obj: Message) -> str | None:
        if obj.deleted:
            return None
        return obj.content


class MessageCreateSerializer(serializers.Serializer):
    """
    Send a message.

    Length and blank checks live in MessageService so every transport gets
    the same error codes; this only shapes the request.
    """

    sender_id = serializers.IntegerField()
    content = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH * 2,
    )


class MessagePageParamsSerializer(serializers.Serializer):
    cursor = serializers.CharField(required=False, allow_blank=True)
    limit = serializers.IntegerField(
        required=False, min_value=1, max_value=MESSAGE_CONFIG.MAX_PAGE_SIZE
    )


class MessagePageSerializer(serializers.Serializer):
    """One page of messages, oldest first."""

    messages = MessageSerializer(many=True)
    continue_cursor = serializers.CharField(allow_null=True)


# =============================================================================
# Conversation Serializers
# =============================================================================


class ConversationSerializer(serializers.ModelSerializer):
    """Conversation with its member user records."""

    admin_id = serializers.IntegerField(read_only=True, allow_null=True)
    members = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = [
            "id",
            "conversation_type",
            "name",
            "admin_id",
            "members",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_members(self, obj: Conversation) -> list[dict]:
        users = getattr(obj, "member_users", None)
        if users is None:
            users = [member.user for member in obj.members.select_related("user")]
        return UserSerializer(users, many=True).data


class ConversationListItemSerializer(ConversationSerializer):
    """Conversation list entry with latest message preview and unread count."""

    latest_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()

    class Meta(ConversationSerializer.Meta):
        fields = [*ConversationSerializer.Meta.fields, "latest_message", "unread_count"]
        read_only_fields = fields

    def get_latest_message(self, obj: Conversation) -> dict | None:
        message = getattr(obj, "latest_message", None)
        if message is None:
            return None
        return MessageSerializer(message).data

    def get_unread_count(self, obj: Conversation) -> int:
        return getattr(obj, "unread_count", 0)


class ConversationPageSerializer(serializers.Serializer):
    conversations = ConversationListItemSerializer(many=True)
    next_cursor = serializers.IntegerField(allow_null=True)


class ConversationPageParamsSerializer(serializers.Serializer):
    cursor = serializers.IntegerField(required=False, min_value=0)
    limit = serializers.IntegerField(
        required=False, min_value=1, max_value=CONVERSATION_CONFIG.MAX_PAGE_SIZE
    )


class DirectConversationCreateSerializer(serializers.Serializer):
    """Open (or find) the direct conversation with another user."""

    current_user_id = serializers.IntegerField()
    other_user_id = serializers.IntegerField()


class GroupCreateSerializer(serializers.Serializer):
    """
    Create a group.

    ``member_ids`` excludes the creator, who always becomes admin and member.
    """

    current_user_id = serializers.IntegerField()
    name = serializers.CharField(
        max_length=GROUP_CONFIG.MAX_NAME_LENGTH,
        allow_blank=True,
    )
    member_ids = serializers.ListField(
        child=serializers.IntegerField(),
        allow_empty=True,
    )


class GroupMembersSerializer(serializers.Serializer):
    member_ids = serializers.ListField(
        child=serializers.IntegerField(),
        allow_empty=False,
    )


class ReadReceiptSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()


# =============================================================================
# Reaction Serializers
# =============================================================================


class ReactionGroupSerializer(serializers.Serializer):
    emoji = serializers.CharField()
    count = serializers.IntegerField()
    user_ids = serializers.ListField(child=serializers.IntegerField())


class ReactionToggleSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    emoji = serializers.CharField(
        max_length=REACTION_CONFIG.MAX_EMOJI_LENGTH * 4,
        trim_whitespace=False,
        allow_blank=True,
    )


# =============================================================================
# Typing / Presence Serializers
# =============================================================================


class TypingSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()


class PresenceSerializer(serializers.Serializer):
    online = serializers.BooleanField()
    last_seen = serializers.DateTimeField(allow_null=True)
