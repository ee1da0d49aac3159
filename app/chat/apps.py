"""
Chat application configuration.

This app provides the messaging core with:
- Direct and group conversations
- Admin-only group management
- Watermark-paginated message history
- Unread counts, reactions, typing and presence
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
