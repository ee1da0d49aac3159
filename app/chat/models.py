"""
Chat system models.

This module defines the data models for the messaging core:
- Direct conversations between two users (or a single user's self-chat)
- Admin-governed group conversations of up to 20 members
- Append-only message log with logical deletion and read status
- Emoji reactions, unread counters, typing signals and presence

Models:
    Conversation: Container for messages between members
    DirectConversationPair: Enforces one direct conversation per unordered pair
    ConversationMember: Membership of a user in a conversation
    Message: Individual message within a conversation
    Reaction: One emoji from one user on one message
    UnreadCounter: Per (conversation, user) count of unread messages
    TypingSignal: Ephemeral "is typing" row with an expiry
    PresenceRecord: Online flag and last-seen timestamp per user

Design Decisions:
    - Conversation.updated_at orders the conversation list and is bumped on
      every new message and membership change
    - Message.created_at is assigned under the conversation row lock so it
      never decreases within a conversation; (created_at, id) is the
      pagination key
    - Typing and presence rows are ordinary rows; expiry is a filter on
      read and a prune on write, plus a periodic Celery sweep
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from core.models import BaseModel


class ConversationType(models.TextChoices):
    """
    Type of conversation.

    DIRECT: One or two members, no name, no admin
    GROUP: Named, one admin, 1-20 members
    """

    DIRECT = "direct", "Direct Message"
    GROUP = "group", "Group"


class MessageStatus(models.TextChoices):
    """Delivery status of a message."""

    SENT = "sent", "Sent"
    DELIVERED = "delivered", "Delivered"
    READ = "read", "Read"


class Conversation(BaseModel):
    """
    A direct or group conversation.

    Fields:
        conversation_type: direct or group
        name: Group name (empty for direct conversations)
        admin: Group admin (null for direct conversations). Not reassigned
            when the admin leaves.
        last_message_at: created_at of the newest message; floor for the
            next message's created_at

    Relationships:
        members: ConversationMember rows
        messages: Message rows
        direct_pair: DirectConversationPair if type is DIRECT
    """

    conversation_type = models.CharField(
        max_length=10,
        choices=ConversationType.choices,
        default=ConversationType.DIRECT,
        db_index=True,
        help_text="Type of conversation (direct or group)",
    )

    name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Name for group conversations (empty for direct)",
    )

    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="administered_conversations",
        help_text="Group admin (null for direct conversations)",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Timestamp of the most recent message",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-updated_at", "-id"]
        indexes = [
            models.Index(
                fields=["-updated_at", "-id"],
                name="chat_conv_updated_idx",
            ),
        ]

    def __str__(self) -> str:
        if self.conversation_type == ConversationType.DIRECT:
            return f"Direct({self.pk})"
        if self.name:
            return f"Group: {self.name}"
        return f"Group({self.pk})"

    @property
    def is_direct(self) -> bool:
        return self.conversation_type == ConversationType.DIRECT

    @property
    def is_group(self) -> bool:
        return self.conversation_type == ConversationType.GROUP


class DirectConversationPair(models.Model):
    """
    Enforces uniqueness of direct conversations per unordered user pair.

    Pairs are stored in canonical order (lower user id first). The self-chat
    is the degenerate pair where both sides are the same user.

    Constraints:
        - UniqueConstraint(user_lower, user_higher): One conversation per pair
        - CheckConstraint(user_lower_id <= user_higher_id): Canonical order
    """

    conversation = models.OneToOneField(
        Conversation,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="direct_pair",
        help_text="The direct conversation this pair represents",
    )

    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with the lower id",
    )

    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with the higher id (same as user_lower for self-chat)",
    )

    class Meta:
        db_table = "chat_direct_conversation_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_conversation_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lte=F("user_higher_id")),
                name="user_lower_not_above_higher",
            ),
        ]

    def __str__(self) -> str:
        return f"DirectPair({self.user_lower_id}, {self.user_higher_id})"

    @staticmethod
    def canonical(user_a_id: int, user_b_id: int) -> tuple[int, int]:
        """Return the (lower, higher) ordering of two user ids."""
        return (user_a_id, user_b_id) if user_a_id <= user_b_id else (user_b_id, user_a_id)


class ConversationMember(models.Model):
    """
    Membership of a user in a conversation.

    Constraints:
        - UniqueConstraint(conversation, user)
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="members",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_memberships",
    )

    joined_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the user joined the conversation",
    )

    class Meta:
        db_table = "chat_conversation_member"
        ordering = ["joined_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_conversation_member",
            ),
        ]
        indexes = [
            models.Index(
                fields=["user", "conversation"],
                name="chat_member_user_conv_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Member(user={self.user_id}, conversation={self.conversation_id})"


class Message(BaseModel):
    """
    Individual message within a conversation.

    Deletion is logical: ``deleted`` hides the content from API payloads but
    the row and its content stay in storage.

    Fields:
        conversation: Parent conversation
        sender: Author
        content: Message text (retained after deletion)
        deleted: Logical deletion flag
        status: sent, delivered or read
        created_at: Server-assigned, non-decreasing per conversation
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
    )

    content = models.TextField(help_text="Message text")

    deleted = models.BooleanField(
        default=False,
        help_text="Logically deleted (content hidden, reactions suppressed)",
    )

    status = models.CharField(
        max_length=10,
        choices=MessageStatus.choices,
        default=MessageStatus.SENT,
    )

    # Assigned by MessageService under the conversation lock
    created_at = models.DateTimeField(
        default=timezone.now,
        help_text="Server-assigned creation time (pagination key with id)",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["conversation", "-created_at", "-id"],
                name="chat_msg_conv_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Message({self.pk}) in {self.conversation_id}"


class Reaction(BaseModel):
    """
    One emoji reaction from one user on one message.

    A user may hold several different emoji on the same message; the same
    emoji twice is a toggle (second submission removes the row).
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reactions",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_reactions",
    )

    emoji = models.CharField(max_length=32)

    class Meta:
        db_table = "chat_reaction"
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user", "emoji"],
                name="unique_message_user_emoji",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.emoji} by {self.user_id} on {self.message_id}"


class UnreadCounter(models.Model):
    """
    Unread message count for one member of one conversation.

    ``count`` equals the number of non-deleted messages from other senders
    created after ``last_read_at``. Increments happen under the conversation
    row lock with F() expressions.
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="unread_counters",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="unread_counters",
    )

    count = models.PositiveIntegerField(default=0)

    last_read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the user last marked the conversation as read",
    )

    class Meta:
        db_table = "chat_unread_counter"
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_unread_counter",
            ),
        ]

    def __str__(self) -> str:
        return f"Unread({self.count}) for {self.user_id} in {self.conversation_id}"


class TypingSignal(models.Model):
    """
    A member is typing in a conversation while now < expires_at.
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="typing_signals",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="typing_signals",
    )

    expires_at = models.DateTimeField(db_index=True)

    class Meta:
        db_table = "chat_typing_signal"
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_typing_signal",
            ),
        ]

    def __str__(self) -> str:
        return f"Typing({self.user_id} in {self.conversation_id})"


class PresenceRecord(models.Model):
    """Online flag and last transition time for a user."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="presence",
    )

    online = models.BooleanField(default=False, db_index=True)

    last_seen = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "chat_presence_record"

    def __str__(self) -> str:
        state = "online" if self.online else "offline"
        return f"Presence({self.user_id}: {state})"
