"""
Chat system service layer.

This module provides the business logic for the messaging core, encapsulating
every query and mutation on conversations, messages, reactions and
ephemeral signals.

Services:
    ConversationService: Direct/group creation, membership, deletion, listings
    MessageService: Message log, pagination, unread accounting, read status
    ReactionService: Toggle reactions and grouped counts
    TypingService: TTL-based typing indicators
    PresenceService: Online flag and last-seen per user

Design Principles:
    - Services are stateless (use class methods)
    - Every entry point takes the verified identity as its first argument and
      re-derives the caller through chat.authorization
    - Mutations return ServiceResult; expected failures never raise
    - Queries fail soft (empty list, None, empty page) on authorization failures
    - Conversation-scoped writes serialize on the conversation row
      (select_for_update), message-scoped reaction toggles on the message row
    - Change events are published after commit (chat.events)

Usage:
    from chat.services import ConversationService, MessageService

    result = ConversationService.get_or_create_conversation(
        identity, current_user_id=me.id, other_user_id=other.id
    )
    if result.success:
        conversation_id = result.data

    result = MessageService.send_message(
        identity,
        conversation_id=conversation_id,
        sender_id=me.id,
        content="Hello!",
    )
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.db.models import F, OuterRef, Prefetch, Q, Subquery
from django.utils import timezone

from authentication.models import User
from core.helpers import clamp_limit
from core.services import BaseService, ServiceResult

from chat.authorization import (
    ChatAuthorizationService,
    member_query,
    require_caller,
    require_conversation_member,
    require_message_member,
)
from chat.constants import (
    CONVERSATION_CONFIG,
    GROUP_CONFIG,
    MESSAGE_CONFIG,
    PRESENCE_CONFIG,
    REACTION_CONFIG,
    TYPING_CONFIG,
)
from chat.events import (
    ONLINE_USERS_TOPIC,
    conversation_topic,
    inbox_topics,
    messages_topic,
    presence_topic,
    publish_change,
    reactions_topic,
    typing_topic,
)
from chat.models import (
    Conversation,
    ConversationMember,
    ConversationType,
    DirectConversationPair,
    Message,
    MessageStatus,
    PresenceRecord,
    Reaction,
    TypingSignal,
    UnreadCounter,
)
from chat.pagination import decode_message_cursor, encode_message_cursor

if TYPE_CHECKING:
    from authentication.backends import ExternalIdentity

logger = logging.getLogger(__name__)


def _unauthorized(what: str) -> ServiceResult:
    return ServiceResult.failure(
        f"Cannot {what} on behalf of another user",
        error_code="UNAUTHORIZED",
    )


def _missing_user_ids(user_ids: list[int]) -> list[int]:
    found = set(
        User.objects.filter(pk__in=user_ids, is_active=True).values_list("pk", flat=True)
    )
    return [user_id for user_id in user_ids if user_id not in found]


class ConversationService(BaseService):
    """
    Service for conversation lifecycle and listings.

    Methods:
        get_or_create_conversation: Find or create the direct conversation for a pair
        create_group: Create a group with the caller as admin
        add_group_members: Admin adds members (capacity checked)
        remove_group_member: Admin removes a member, or a member leaves
        delete_group: Admin deletes the group and everything in it
        delete_conversation: Any member deletes the conversation for everyone
        get_conversations: Caller's conversation list, newest activity first
        get_conversation: One conversation with its member users
        get_conversation_members: Member users of a conversation
    """

    @classmethod
    @require_caller()
    def get_or_create_conversation(
        cls,
        identity: ExternalIdentity | None,
        *,
        current_user_id: int,
        other_user_id: int,
        _caller: User | None = None,
    ) -> ServiceResult[int]:
        """
        Return the direct conversation between the caller and another user.

        Idempotent: exactly one direct conversation exists per unordered pair.
        When other_user_id equals the caller, the single-member self-chat is
        returned (or created).

        Implementation:
            1. Canonicalize the pair (lower id first; equal ids for self-chat)
            2. Look up DirectConversationPair
            3. If missing, create conversation, pair and members atomically
            4. A concurrent creator wins the unique constraint; re-read its row

        Returns:
            ServiceResult with the conversation id

        Error codes:
            UNAUTHORIZED: current_user_id is not the caller
            USER_NOT_FOUND: other user does not exist
        """
        if _caller.pk != current_user_id:
            return _unauthorized("open a conversation")

        if other_user_id != _caller.pk and _missing_user_ids([other_user_id]):
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        user_lower_id, user_higher_id = DirectConversationPair.canonical(
            _caller.pk, other_user_id
        )
        pair_lookup = {"user_lower_id": user_lower_id, "user_higher_id": user_higher_id}

        existing_id = (
            DirectConversationPair.objects.filter(**pair_lookup)
            .values_list("conversation_id", flat=True)
            .first()
        )
        if existing_id is not None:
            cls.get_logger().debug(
                f"Found direct conversation {existing_id} for pair "
                f"({user_lower_id}, {user_higher_id})"
            )
            return ServiceResult.success(existing_id)

        member_ids = list(dict.fromkeys([_caller.pk, other_user_id]))
        try:
            with cls.atomic():
                conversation = Conversation.objects.create(
                    conversation_type=ConversationType.DIRECT,
                )
                DirectConversationPair.objects.create(conversation=conversation, **pair_lookup)
                ConversationMember.objects.bulk_create(
                    [
                        ConversationMember(conversation=conversation, user_id=user_id)
                        for user_id in member_ids
                    ]
                )
                publish_change(inbox_topics(member_ids))
        except IntegrityError:
            existing_id = DirectConversationPair.objects.get(**pair_lookup).conversation_id
            cls.get_logger().info(
                f"Direct conversation for ({user_lower_id}, {user_higher_id}) "
                f"created concurrently, using {existing_id}"
            )
            return ServiceResult.success(existing_id)

        cls.get_logger().info(
            f"Created direct conversation {conversation.id} for users {member_ids}"
        )
        return ServiceResult.success(conversation.id)

    @classmethod
    @require_caller()
    def create_group(
        cls,
        identity: ExternalIdentity | None,
        *,
        current_user_id: int,
        member_ids: list[int],
        name: str,
        _caller: User | None = None,
    ) -> ServiceResult[int]:
        """
        Create a group conversation with the caller as admin.

        Member ids are de-duplicated and the caller is removed from them
        before the capacity check (admin + members <= 20). The capacity
        check runs before any write.

        Returns:
            ServiceResult with the conversation id

        Error codes:
            UNAUTHORIZED: current_user_id is not the caller
            NAME_REQUIRED: Group name is blank
            GROUP_CAPACITY_EXCEEDED: More than 20 members in total
            USER_NOT_FOUND: A member id does not exist
        """
        if _caller.pk != current_user_id:
            return _unauthorized("create a group")

        name = name.strip() if name else ""
        if not name:
            return ServiceResult.failure(
                "Group name is required",
                error_code="NAME_REQUIRED",
            )

        members = [m for m in dict.fromkeys(member_ids) if m != _caller.pk]
        if 1 + len(members) > GROUP_CONFIG.MAX_MEMBERS:
            return ServiceResult.failure(
                f"Group can have at most {GROUP_CONFIG.MAX_MEMBERS} members",
                error_code="GROUP_CAPACITY_EXCEEDED",
            )

        missing = _missing_user_ids(members)
        if missing:
            return ServiceResult.failure(
                f"Users not found: {missing}",
                error_code="USER_NOT_FOUND",
            )

        with cls.atomic():
            conversation = Conversation.objects.create(
                conversation_type=ConversationType.GROUP,
                name=name[: GROUP_CONFIG.MAX_NAME_LENGTH],
                admin=_caller,
            )
            ConversationMember.objects.bulk_create(
                [
                    ConversationMember(conversation=conversation, user_id=user_id)
                    for user_id in [_caller.pk, *members]
                ]
            )
            publish_change(inbox_topics([_caller.pk, *members]))

        cls.get_logger().info(
            f"Created group {conversation.id} '{conversation.name}' "
            f"with {1 + len(members)} members"
        )
        return ServiceResult.success(conversation.id)

    @classmethod
    def _lock_group(
        cls,
        conversation_id: int,
        caller: User,
    ) -> tuple[Conversation | None, ServiceResult | None]:
        """
        Lock a group conversation row the caller belongs to.

        Must run inside atomic(); membership is read under the row lock.
        """
        conversation = (
            Conversation.objects.select_for_update().filter(pk=conversation_id).first()
        )
        if conversation is None:
            return None, ServiceResult.failure(
                "Conversation not found", error_code="CONVERSATION_NOT_FOUND"
            )
        if not conversation.is_group:
            return None, ServiceResult.failure(
                "Conversation is not a group", error_code="NOT_GROUP"
            )
        if not ChatAuthorizationService.is_conversation_member(caller, conversation_id):
            return None, ServiceResult.failure(
                "You are not a member of this conversation", error_code="NOT_MEMBER"
            )
        return conversation, None

    @classmethod
    @require_caller()
    def add_group_members(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        member_ids: list[int],
        _caller: User | None = None,
    ) -> ServiceResult[list[int]]:
        """
        Add members to a group (admin only).

        Ids that are already members are skipped. Capacity is checked against
        the resulting membership.

        Returns:
            ServiceResult with the ids actually added

        Error codes:
            CONVERSATION_NOT_FOUND, NOT_GROUP, NOT_MEMBER, NOT_ADMIN,
            GROUP_CAPACITY_EXCEEDED, USER_NOT_FOUND
        """
        with cls.atomic():
            conversation, failure = cls._lock_group(conversation_id, _caller)
            if failure:
                return failure
            if conversation.admin_id != _caller.pk:
                return ServiceResult.failure(
                    "Only the group admin can add members", error_code="NOT_ADMIN"
                )

            existing = set(ChatAuthorizationService.get_member_ids(conversation_id))
            new_ids = [m for m in dict.fromkeys(member_ids) if m not in existing]

            if len(existing) + len(new_ids) > GROUP_CONFIG.MAX_MEMBERS:
                return ServiceResult.failure(
                    f"Group can have at most {GROUP_CONFIG.MAX_MEMBERS} members",
                    error_code="GROUP_CAPACITY_EXCEEDED",
                )

            missing = _missing_user_ids(new_ids)
            if missing:
                return ServiceResult.failure(
                    f"Users not found: {missing}", error_code="USER_NOT_FOUND"
                )

            ConversationMember.objects.bulk_create(
                [
                    ConversationMember(conversation=conversation, user_id=user_id)
                    for user_id in new_ids
                ]
            )
            Conversation.objects.filter(pk=conversation_id).update(updated_at=timezone.now())
            publish_change(
                [conversation_topic(conversation_id), *inbox_topics([*existing, *new_ids])]
            )

        cls.get_logger().info(
            f"User {_caller.pk} added {new_ids} to group {conversation_id}"
        )
        return ServiceResult.success(new_ids)

    @classmethod
    @require_caller()
    def remove_group_member(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        member_id: int,
        _caller: User | None = None,
    ) -> ServiceResult[None]:
        """
        Remove a member from a group.

        Allowed for the admin (any member) or for a member removing
        themself. The removed member's unread counter and typing signal go
        with the membership. Adminship is not transferred when the admin
        leaves.

        Error codes:
            CONVERSATION_NOT_FOUND, NOT_GROUP, NOT_MEMBER, NOT_ADMIN
        """
        with cls.atomic():
            conversation, failure = cls._lock_group(conversation_id, _caller)
            if failure:
                return failure

            is_admin = conversation.admin_id == _caller.pk
            is_self = member_id == _caller.pk
            if not is_admin and not is_self:
                return ServiceResult.failure(
                    "Only the group admin can remove other members",
                    error_code="NOT_ADMIN",
                )

            affected = ChatAuthorizationService.get_member_ids(conversation_id)
            ConversationMember.objects.filter(
                conversation_id=conversation_id, user_id=member_id
            ).delete()
            UnreadCounter.objects.filter(
                conversation_id=conversation_id, user_id=member_id
            ).delete()
            TypingSignal.objects.filter(
                conversation_id=conversation_id, user_id=member_id
            ).delete()
            Conversation.objects.filter(pk=conversation_id).update(updated_at=timezone.now())
            publish_change(
                [
                    conversation_topic(conversation_id),
                    typing_topic(conversation_id),
                    *inbox_topics([*affected, member_id]),
                ]
            )

        cls.get_logger().info(
            f"User {_caller.pk} removed {member_id} from group {conversation_id}"
        )
        return ServiceResult.success()

    @classmethod
    def _delete_cascade(cls, conversation: Conversation) -> None:
        """Delete a conversation with its messages, reactions and member rows."""
        conversation_id = conversation.pk
        member_ids = ChatAuthorizationService.get_member_ids(conversation_id)
        conversation.delete()
        publish_change(
            [
                conversation_topic(conversation_id),
                messages_topic(conversation_id),
                typing_topic(conversation_id),
                *inbox_topics(member_ids),
            ]
        )

    @classmethod
    @require_caller()
    def delete_group(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        _caller: User | None = None,
    ) -> ServiceResult[None]:
        """
        Delete a group and everything in it (admin only).

        Error codes:
            CONVERSATION_NOT_FOUND, NOT_GROUP, NOT_MEMBER, NOT_ADMIN
        """
        with cls.atomic():
            conversation, failure = cls._lock_group(conversation_id, _caller)
            if failure:
                return failure
            if conversation.admin_id != _caller.pk:
                return ServiceResult.failure(
                    "Only the group admin can delete the group", error_code="NOT_ADMIN"
                )
            cls._delete_cascade(conversation)

        cls.get_logger().info(f"User {_caller.pk} deleted group {conversation_id}")
        return ServiceResult.success()

    @classmethod
    @require_conversation_member()
    def delete_conversation(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        _caller: User | None = None,
        _conversation: Conversation | None = None,
    ) -> ServiceResult[None]:
        """
        Delete a conversation for every member.

        Any member may call this, for direct and group conversations alike.
        Messages, reactions, unread counters, typing signals and memberships
        are removed with it.

        Error codes:
            CONVERSATION_NOT_FOUND, NOT_MEMBER
        """
        with cls.atomic():
            conversation = (
                Conversation.objects.select_for_update().filter(pk=conversation_id).first()
            )
            if conversation is None:
                return ServiceResult.failure(
                    "Conversation not found", error_code="CONVERSATION_NOT_FOUND"
                )
            cls._delete_cascade(conversation)

        cls.get_logger().info(
            f"User {_caller.pk} deleted conversation {conversation_id}"
        )
        return ServiceResult.success()

    @staticmethod
    def _with_member_users(queryset):
        return queryset.prefetch_related(
            Prefetch(
                "members",
                queryset=ConversationMember.objects.select_related("user").order_by(
                    "joined_at", "id"
                ),
            )
        )

    @classmethod
    @member_query(empty=lambda: {"conversations": [], "next_cursor": None})
    def get_conversations(
        cls,
        identity: ExternalIdentity | None,
        *,
        user_id: int,
        cursor: int | None = None,
        limit: int | None = None,
        _caller: User | None = None,
    ) -> dict:
        """
        List the caller's conversations, most recently active first.

        Each conversation carries ``member_users``, ``latest_message`` (newest
        by created_at, deleted or not) and the caller's ``unread_count``.

        Args:
            user_id: Must equal the caller, otherwise the result is empty
            cursor: Offset from a previous page's next_cursor
            limit: Page size (default 15)

        Returns:
            {"conversations": [Conversation, ...], "next_cursor": int | None}
        """
        if _caller.pk != user_id:
            return {"conversations": [], "next_cursor": None}

        limit = clamp_limit(
            limit, CONVERSATION_CONFIG.DEFAULT_PAGE_SIZE, CONVERSATION_CONFIG.MAX_PAGE_SIZE
        )
        offset = max(cursor or 0, 0)

        latest_message_id = (
            Message.objects.filter(conversation=OuterRef("pk"))
            .order_by("-created_at", "-id")
            .values("id")[:1]
        )
        queryset = cls._with_member_users(
            Conversation.objects.filter(members__user=_caller)
            .annotate(latest_message_id=Subquery(latest_message_id))
            .order_by("-updated_at", "-id")
        )
        page = list(queryset[offset:offset + limit + 1])
        has_more = len(page) > limit
        page = page[:limit]

        latest = Message.objects.select_related("sender").in_bulk(
            [c.latest_message_id for c in page if c.latest_message_id]
        )
        unread = dict(
            UnreadCounter.objects.filter(
                user=_caller, conversation_id__in=[c.pk for c in page]
            ).values_list("conversation_id", "count")
        )

        for conversation in page:
            conversation.member_users = [m.user for m in conversation.members.all()]
            conversation.latest_message = latest.get(conversation.latest_message_id)
            conversation.unread_count = unread.get(conversation.pk, 0)

        return {
            "conversations": page,
            "next_cursor": offset + limit if has_more else None,
        }

    @classmethod
    @member_query(empty=lambda: None, conversation_id_param="conversation_id")
    def get_conversation(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        _caller: User | None = None,
        _conversation: Conversation | None = None,
    ) -> Conversation | None:
        """Return the conversation with ``member_users``, or None for non-members."""
        conversation = cls._with_member_users(
            Conversation.objects.filter(pk=conversation_id)
        ).first()
        if conversation is None:
            return None
        conversation.member_users = [m.user for m in conversation.members.all()]
        return conversation

    @classmethod
    @member_query(empty=list, conversation_id_param="conversation_id")
    def get_conversation_members(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        _caller: User | None = None,
        _conversation: Conversation | None = None,
    ) -> list[User]:
        """Member users in join order, or [] for non-members."""
        return [
            member.user
            for member in ConversationMember.objects.filter(conversation_id=conversation_id)
            .select_related("user")
            .order_by("joined_at", "id")
        ]


class MessageService(BaseService):
    """
    Service for the per-conversation message log.

    Methods:
        get_messages: Newest-first pages returned in chronological order
        get_latest_message: Newest message of a conversation
        send_message: Append a message and bump unread counters
        delete_message: Logical deletion by the sender
        mark_messages_as_read: Reset the caller's unread counter
        get_unread_count: Caller's unread counter
        increment_unread_count: Bump a member's unread counter by one
    """

    @classmethod
    @member_query(
        empty=lambda: {"messages": [], "continue_cursor": None},
        conversation_id_param="conversation_id",
    )
    def get_messages(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        cursor: str | None = None,
        limit: int | None = None,
        _caller: User | None = None,
        _conversation: Conversation | None = None,
    ) -> dict:
        """
        Return one page of messages.

        The no-cursor call returns the newest ``limit`` messages (the live
        tail). A cursor returns the ``limit`` messages strictly older than
        its (created_at, id) watermark, so pages neither overlap nor skip
        while new messages arrive.

        Returns:
            {"messages": [Message, ...] oldest first,
             "continue_cursor": str | None}

        Raises:
            core.exceptions.ValidationError: INVALID_CURSOR for a malformed cursor
        """
        limit = clamp_limit(limit, MESSAGE_CONFIG.DEFAULT_PAGE_SIZE, MESSAGE_CONFIG.MAX_PAGE_SIZE)

        queryset = Message.objects.filter(conversation_id=conversation_id).select_related(
            "sender"
        )
        if cursor:
            created_at, message_id = decode_message_cursor(cursor)
            queryset = queryset.filter(
                Q(created_at__lt=created_at) | Q(created_at=created_at, id__lt=message_id)
            )

        page = list(queryset.order_by("-created_at", "-id")[: limit + 1])
        has_more = len(page) > limit
        page = page[:limit]

        continue_cursor = encode_message_cursor(page[-1]) if has_more else None
        page.reverse()

        return {"messages": page, "continue_cursor": continue_cursor}

    @classmethod
    @member_query(empty=lambda: None, conversation_id_param="conversation_id")
    def get_latest_message(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        _caller: User | None = None,
        _conversation: Conversation | None = None,
    ) -> Message | None:
        return (
            Message.objects.filter(conversation_id=conversation_id)
            .select_related("sender")
            .order_by("-created_at", "-id")
            .first()
        )

    @classmethod
    @require_conversation_member()
    def send_message(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        sender_id: int,
        content: str,
        _caller: User | None = None,
        _conversation: Conversation | None = None,
    ) -> ServiceResult[int]:
        """
        Append a message to a conversation.

        Under the conversation row lock:
            1. created_at = max(now, last_message_at), so it never decreases
            2. Insert the message (status sent, not deleted)
            3. Bump conversation updated_at / last_message_at
            4. Increment the unread counter of every other member

        Returns:
            ServiceResult with the new message id

        Error codes:
            UNAUTHORIZED: sender_id is not the caller
            EMPTY_CONTENT: Blank message
            CONTENT_TOO_LONG: Over MESSAGE_CONFIG.MAX_CONTENT_LENGTH characters
        """
        if _caller.pk != sender_id:
            return _unauthorized("send a message")

        content = content or ""
        if not content.strip():
            return ServiceResult.failure(
                "Message content cannot be empty",
                error_code="EMPTY_CONTENT",
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message cannot exceed {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )

        with cls.atomic():
            conversation = Conversation.objects.select_for_update().get(pk=conversation_id)

            created_at = timezone.now()
            if conversation.last_message_at and conversation.last_message_at > created_at:
                created_at = conversation.last_message_at

            message = Message.objects.create(
                conversation=conversation,
                sender=_caller,
                content=content,
                created_at=created_at,
            )
            Conversation.objects.filter(pk=conversation_id).update(
                last_message_at=created_at,
                updated_at=created_at,
            )

            member_ids = ChatAuthorizationService.get_member_ids(conversation_id)
            cls._increment_unread(
                conversation_id, [m for m in member_ids if m != _caller.pk]
            )
            publish_change(
                [
                    messages_topic(conversation_id),
                    conversation_topic(conversation_id),
                    *inbox_topics(member_ids),
                ]
            )

        cls.get_logger().debug(
            f"User {_caller.pk} sent message {message.id} "
            f"to conversation {conversation_id}"
        )
        return ServiceResult.success(message.id)

    @classmethod
    def _increment_unread(cls, conversation_id: int, user_ids: list[int]) -> None:
        """
        Insert-or-increment unread counters.

        Must run under the conversation row lock so two senders cannot both
        insert the same missing row.
        """
        if not user_ids:
            return

        existing = set(
            UnreadCounter.objects.filter(
                conversation_id=conversation_id, user_id__in=user_ids
            ).values_list("user_id", flat=True)
        )
        if existing:
            UnreadCounter.objects.filter(
                conversation_id=conversation_id, user_id__in=existing
            ).update(count=F("count") + 1)

        UnreadCounter.objects.bulk_create(
            [
                UnreadCounter(conversation_id=conversation_id, user_id=user_id, count=1)
                for user_id in user_ids
                if user_id not in existing
            ]
        )

    @classmethod
    @require_message_member()
    def delete_message(
        cls,
        identity: ExternalIdentity | None,
        *,
        message_id: int,
        _caller: User | None = None,
        _message: Message | None = None,
    ) -> ServiceResult[None]:
        """
        Logically delete a message (sender only).

        Content stays in storage. Members for whom the message was still
        unread get their counter decremented (never below zero). Deleting an
        already deleted message is a no-op.

        Error codes:
            MESSAGE_NOT_FOUND, NOT_MEMBER, NOT_SENDER
        """
        if _message.sender_id != _caller.pk:
            return ServiceResult.failure(
                "Only the sender can delete this message",
                error_code="NOT_SENDER",
            )

        conversation_id = _message.conversation_id
        with cls.atomic():
            Conversation.objects.select_for_update().get(pk=conversation_id)
            message = Message.objects.get(pk=message_id)
            if message.deleted:
                return ServiceResult.success()

            message.deleted = True
            message.save(update_fields=["deleted", "updated_at"])

            # Only members who were present when it was sent counted it
            counted_by = ConversationMember.objects.filter(
                conversation_id=conversation_id,
                joined_at__lte=message.created_at,
            ).exclude(user_id=message.sender_id).values("user_id")
            UnreadCounter.objects.filter(
                conversation_id=conversation_id,
                user_id__in=counted_by,
                count__gt=0,
            ).filter(
                Q(last_read_at__isnull=True) | Q(last_read_at__lt=message.created_at)
            ).update(count=F("count") - 1)

            publish_change(
                [
                    messages_topic(conversation_id),
                    reactions_topic(message_id),
                    *inbox_topics(ChatAuthorizationService.get_member_ids(conversation_id)),
                ]
            )

        cls.get_logger().info(f"User {_caller.pk} deleted message {message_id}")
        return ServiceResult.success()

    @classmethod
    @require_conversation_member()
    def mark_messages_as_read(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        user_id: int,
        _caller: User | None = None,
        _conversation: Conversation | None = None,
    ) -> ServiceResult[int]:
        """
        Zero the caller's unread counter and mark other members' messages read.

        Idempotent: messages already marked read are left alone.

        Returns:
            ServiceResult with the number of messages whose status changed

        Error codes:
            UNAUTHORIZED: user_id is not the caller
        """
        if _caller.pk != user_id:
            return _unauthorized("mark messages as read")

        with cls.atomic():
            conversation = Conversation.objects.select_for_update().get(pk=conversation_id)

            read_at = timezone.now()
            if conversation.last_message_at and conversation.last_message_at > read_at:
                read_at = conversation.last_message_at

            UnreadCounter.objects.update_or_create(
                conversation_id=conversation_id,
                user=_caller,
                defaults={"count": 0, "last_read_at": read_at},
            )
            updated = (
                Message.objects.filter(conversation_id=conversation_id)
                .exclude(sender=_caller)
                .exclude(status=MessageStatus.READ)
                .update(status=MessageStatus.READ, updated_at=timezone.now())
            )

            topics = [*inbox_topics([_caller.pk])]
            if updated:
                topics.append(messages_topic(conversation_id))
            publish_change(topics)

        cls.get_logger().debug(
            f"User {_caller.pk} read conversation {conversation_id} ({updated} messages)"
        )
        return ServiceResult.success(updated)

    @classmethod
    @member_query(empty=lambda: 0, conversation_id_param="conversation_id")
    def get_unread_count(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        user_id: int | None = None,
        _caller: User | None = None,
        _conversation: Conversation | None = None,
    ) -> int:
        """Caller's unread count for a conversation (0 when none recorded)."""
        if user_id is not None and user_id != _caller.pk:
            return 0
        return (
            UnreadCounter.objects.filter(conversation_id=conversation_id, user=_caller)
            .values_list("count", flat=True)
            .first()
            or 0
        )

    @classmethod
    @require_conversation_member()
    def increment_unread_count(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        user_id: int,
        _caller: User | None = None,
        _conversation: Conversation | None = None,
    ) -> ServiceResult[int]:
        """
        Increment one member's unread counter by one.

        Returns:
            ServiceResult with the new count

        Error codes:
            NOT_MEMBER: Target user is not a member
        """
        with cls.atomic():
            Conversation.objects.select_for_update().get(pk=conversation_id)
            if not ChatAuthorizationService.is_conversation_member(user_id, conversation_id):
                return ServiceResult.failure(
                    "User is not a member of this conversation",
                    error_code="NOT_MEMBER",
                )
            cls._increment_unread(conversation_id, [user_id])
            count = UnreadCounter.objects.get(
                conversation_id=conversation_id, user_id=user_id
            ).count
            publish_change(inbox_topics([user_id]))

        return ServiceResult.success(count)


class ReactionService(BaseService):
    """
    Service for message reactions.

    Methods:
        add_reaction: Toggle (message, user, emoji)
        get_reactions: Reactions grouped by emoji
    """

    @classmethod
    def _validate_emoji(cls, emoji: str | None) -> bool:
        if not emoji or not emoji.strip():
            return False
        return len(emoji.strip()) <= REACTION_CONFIG.MAX_EMOJI_LENGTH

    @classmethod
    @require_message_member()
    def add_reaction(
        cls,
        identity: ExternalIdentity | None,
        *,
        message_id: int,
        user_id: int,
        emoji: str,
        _caller: User | None = None,
        _message: Message | None = None,
    ) -> ServiceResult[int | None]:
        """
        Toggle a reaction.

        If the caller already reacted with this emoji the reaction is removed
        and the result data is None; otherwise it is added and the data is
        the new reaction id. Toggles on one message serialize on its row.

        Error codes:
            UNAUTHORIZED: user_id is not the caller
            INVALID_EMOJI: Blank or longer than REACTION_CONFIG.MAX_EMOJI_LENGTH
        """
        if _caller.pk != user_id:
            return _unauthorized("react")
        if not cls._validate_emoji(emoji):
            return ServiceResult.failure("Invalid emoji", error_code="INVALID_EMOJI")
        emoji = emoji.strip()

        with cls.atomic():
            Message.objects.select_for_update().get(pk=message_id)
            existing = Reaction.objects.filter(
                message_id=message_id, user=_caller, emoji=emoji
            ).first()

            if existing:
                existing.delete()
                reaction_id = None
            else:
                reaction_id = Reaction.objects.create(
                    message_id=message_id, user=_caller, emoji=emoji
                ).id

            publish_change([reactions_topic(message_id)])

        cls.get_logger().debug(
            f"User {_caller.pk} {'added' if reaction_id else 'removed'} "
            f"{emoji} on message {message_id}"
        )
        return ServiceResult.success(reaction_id)

    @classmethod
    @member_query(empty=list, message_id_param="message_id")
    def get_reactions(
        cls,
        identity: ExternalIdentity | None,
        *,
        message_id: int,
        _caller: User | None = None,
        _message: Message | None = None,
    ) -> list[dict]:
        """
        Reactions grouped by emoji.

        Returns:
            [{"emoji": str, "count": int, "user_ids": [int, ...]}, ...]
            Groups appear in order of first reaction; user_ids in the order
            the reactions were added.
        """
        groups: dict[str, dict] = {}
        for emoji, reactor_id in (
            Reaction.objects.filter(message_id=message_id)
            .order_by("id")
            .values_list("emoji", "user_id")
        ):
            group = groups.setdefault(emoji, {"emoji": emoji, "count": 0, "user_ids": []})
            group["count"] += 1
            group["user_ids"].append(reactor_id)
        return list(groups.values())


class TypingService(BaseService):
    """
    Service for typing indicators.

    A TypingSignal row means "typing" while now < expires_at. The write path
    prunes expired rows for the conversation; the read path only filters.
    """

    @classmethod
    def window(cls) -> timedelta:
        return timedelta(seconds=TYPING_CONFIG.WINDOW_SECONDS)

    @classmethod
    @require_conversation_member()
    def set_typing(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        user_id: int,
        _caller: User | None = None,
        _conversation: Conversation | None = None,
    ) -> ServiceResult:
        """
        Upsert the caller's typing signal with a fresh expiry.

        Returns:
            ServiceResult with the new expires_at
        """
        if _caller.pk != user_id:
            return _unauthorized("set typing")

        now = timezone.now()
        with cls.atomic():
            Conversation.objects.select_for_update().get(pk=conversation_id)
            pruned, _ = TypingSignal.objects.filter(
                conversation_id=conversation_id, expires_at__lte=now
            ).delete()
            signal, _ = TypingSignal.objects.update_or_create(
                conversation_id=conversation_id,
                user=_caller,
                defaults={"expires_at": now + cls.window()},
            )
            publish_change([typing_topic(conversation_id)])

        if pruned:
            cls.get_logger().debug(
                f"Pruned {pruned} expired typing signals in {conversation_id}"
            )
        return ServiceResult.success(signal.expires_at)

    @classmethod
    @require_conversation_member()
    def clear_typing(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        user_id: int,
        _caller: User | None = None,
        _conversation: Conversation | None = None,
    ) -> ServiceResult[None]:
        """Delete the caller's typing signal (on send or empty input)."""
        if _caller.pk != user_id:
            return _unauthorized("clear typing")

        with cls.atomic():
            deleted, _ = TypingSignal.objects.filter(
                conversation_id=conversation_id, user=_caller
            ).delete()
            if deleted:
                publish_change([typing_topic(conversation_id)])

        return ServiceResult.success()

    @classmethod
    @member_query(empty=list, conversation_id_param="conversation_id")
    def get_typing_users(
        cls,
        identity: ExternalIdentity | None,
        *,
        conversation_id: int,
        exclude_user_id: int | None = None,
        _caller: User | None = None,
        _conversation: Conversation | None = None,
    ) -> list[User]:
        """
        Users with an unexpired typing signal.

        Excludes ``exclude_user_id`` (the caller when not given). Expired rows
        are filtered out but not deleted here.
        """
        exclude = exclude_user_id if exclude_user_id is not None else _caller.pk
        signals = (
            TypingSignal.objects.filter(
                conversation_id=conversation_id,
                expires_at__gt=timezone.now(),
            )
            .exclude(user_id=exclude)
            .select_related("user")
            .order_by("id")
        )
        return [signal.user for signal in signals]

    @classmethod
    def prune_expired(cls) -> int:
        """Delete every expired typing signal. Used by the periodic sweep."""
        now = timezone.now()
        conversation_ids = set(
            TypingSignal.objects.filter(expires_at__lte=now).values_list(
                "conversation_id", flat=True
            )
        )
        deleted, _ = TypingSignal.objects.filter(expires_at__lte=now).delete()
        if deleted:
            publish_change([typing_topic(c) for c in conversation_ids])
        return deleted


class PresenceService(BaseService):
    """
    Service for online presence.

    One PresenceRecord per user. Connect and heartbeat set online, disconnect
    sets offline; last_seen moves on every write. Users with no row are
    reported offline with last_seen None.
    """

    @classmethod
    def _set(cls, user: User, online: bool) -> PresenceRecord:
        record, _ = PresenceRecord.objects.update_or_create(
            user=user,
            defaults={"online": online, "last_seen": timezone.now()},
        )
        publish_change([presence_topic(user.pk), ONLINE_USERS_TOPIC])
        return record

    @classmethod
    @require_caller()
    def set_online(
        cls,
        identity: ExternalIdentity | None,
        *,
        _caller: User | None = None,
    ) -> ServiceResult[PresenceRecord]:
        with cls.atomic():
            record = cls._set(_caller, online=True)
        cls.get_logger().debug(f"User {_caller.pk} online")
        return ServiceResult.success(record)

    @classmethod
    def heartbeat(cls, identity: ExternalIdentity | None) -> ServiceResult[PresenceRecord]:
        """Refresh last_seen for a connected client."""
        return cls.set_online(identity)

    @classmethod
    @require_caller()
    def set_offline(
        cls,
        identity: ExternalIdentity | None,
        *,
        _caller: User | None = None,
    ) -> ServiceResult[PresenceRecord]:
        with cls.atomic():
            record = cls._set(_caller, online=False)
        cls.get_logger().debug(f"User {_caller.pk} offline")
        return ServiceResult.success(record)

    @classmethod
    @member_query(empty=lambda: None)
    def get_user_presence(
        cls,
        identity: ExternalIdentity | None,
        *,
        user_id: int,
        _caller: User | None = None,
    ) -> dict | None:
        """
        Presence of any user.

        Returns:
            {"online": bool, "last_seen": datetime | None}; None when the
            caller is unauthenticated
        """
        record = PresenceRecord.objects.filter(user_id=user_id).first()
        if record is None:
            return {"online": False, "last_seen": None}
        return {"online": record.online, "last_seen": record.last_seen}

    @classmethod
    @member_query(empty=list)
    def get_online_users(
        cls,
        identity: ExternalIdentity | None,
        *,
        _caller: User | None = None,
    ) -> list[int]:
        """Ids of users currently marked online."""
        return list(
            PresenceRecord.objects.filter(online=True)
            .order_by("user_id")
            .values_list("user_id", flat=True)
        )

    @classmethod
    def expire_stale(cls) -> int:
        """
        Mark users offline whose heartbeat stopped.

        Used by the periodic sweep for clients that vanished without a
        clean disconnect.
        """
        cutoff = timezone.now() - timedelta(seconds=PRESENCE_CONFIG.STALE_AFTER_SECONDS)
        with cls.atomic():
            user_ids = list(
                PresenceRecord.objects.select_for_update()
                .filter(online=True, last_seen__lt=cutoff)
                .values_list("user_id", flat=True)
            )
            if not user_ids:
                return 0
            PresenceRecord.objects.filter(user_id__in=user_ids).update(online=False)
            publish_change(
                [*(presence_topic(user_id) for user_id in user_ids), ONLINE_USERS_TOPIC]
            )

        cls.get_logger().info(f"Marked {len(user_ids)} stale users offline")
        return len(user_ids)
