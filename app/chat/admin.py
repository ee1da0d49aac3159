"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation management with inline members
- Message moderation
- Unread counters, typing signals and presence (read-mostly)
"""

from django.contrib import admin

from chat.models import (
    Conversation,
    ConversationMember,
    DirectConversationPair,
    Message,
    PresenceRecord,
    Reaction,
    TypingSignal,
    UnreadCounter,
)


class ConversationMemberInline(admin.TabularInline):
    """Inline display of members in conversation admin."""

    model = ConversationMember
    extra = 0
    readonly_fields = ["joined_at"]
    raw_id_fields = ["user"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = [
        "id",
        "conversation_type",
        "name",
        "admin",
        "created_at",
        "updated_at",
        "last_message_at",
    ]
    list_filter = ["conversation_type", "created_at"]
    search_fields = ["name", "id"]
    readonly_fields = ["created_at", "updated_at", "last_message_at"]
    raw_id_fields = ["admin"]
    inlines = [ConversationMemberInline]
    ordering = ["-updated_at"]


@admin.register(DirectConversationPair)
class DirectConversationPairAdmin(admin.ModelAdmin):
    """Admin interface for DirectConversationPair model."""

    list_display = ["conversation", "user_lower", "user_higher"]
    raw_id_fields = ["conversation", "user_lower", "user_higher"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "conversation",
        "sender",
        "content_preview",
        "status",
        "deleted",
        "created_at",
    ]
    list_filter = ["status", "deleted", "created_at"]
    search_fields = ["content", "sender__email"]
    readonly_fields = ["created_at", "updated_at"]
    raw_id_fields = ["conversation", "sender"]
    ordering = ["-created_at"]

    @admin.display(description="Content Preview")
    def content_preview(self, obj: Message) -> str:
        """Return truncated content for list display."""
        max_length = 50
        if len(obj.content) > max_length:
            return obj.content[:max_length] + "..."
        return obj.content


@admin.register(Reaction)
class ReactionAdmin(admin.ModelAdmin):
    list_display = ["id", "message", "user", "emoji", "created_at"]
    search_fields = ["emoji", "user__email"]
    raw_id_fields = ["message", "user"]


@admin.register(UnreadCounter)
class UnreadCounterAdmin(admin.ModelAdmin):
    list_display = ["conversation", "user", "count", "last_read_at"]
    raw_id_fields = ["conversation", "user"]


@admin.register(TypingSignal)
class TypingSignalAdmin(admin.ModelAdmin):
    list_display = ["conversation", "user", "expires_at"]
    raw_id_fields = ["conversation", "user"]


@admin.register(PresenceRecord)
class PresenceRecordAdmin(admin.ModelAdmin):
    list_display = ["user", "online", "last_seen"]
    list_filter = ["online"]
    raw_id_fields = ["user"]
