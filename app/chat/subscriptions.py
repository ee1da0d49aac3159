"""
Live query registry.

Maps each query a client can subscribe to over ``ws/live/`` onto the service
call that evaluates it and the change topics it depends on. The consumer
re-evaluates a subscription whenever one of its topics fires and pushes the
new result only when it differs from the last one sent.

Queries are evaluated with the same identity-first service calls the REST
views use, so the soft-fail rules apply unchanged: a subscriber who may not
see the data receives the empty value.

Registry entry:
    evaluate(identity, args) -> JSON-ready data
    topics(caller_id, args) -> topic names (see chat.events)
    refresh_seconds: re-evaluate on a timer as well (expiry is not an event)

Usage:
    live_query = get_live_query("getMessages")
    data = live_query.evaluate(identity, {"conversation_id": 7})
    topics = live_query.topics(caller_id, {"conversation_id": 7})
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from authentication.serializers import UserPageSerializer, UserSerializer
from authentication.services import IdentityService, UserDirectoryService
from chat.constants import TYPING_CONFIG
from chat.events import (
    DIRECTORY_TOPIC,
    ONLINE_USERS_TOPIC,
    conversation_topic,
    inbox_topic,
    messages_topic,
    presence_topic,
    reactions_topic,
    typing_topic,
)
from chat.serializers import (
    ConversationPageSerializer,
    ConversationSerializer,
    MessagePageSerializer,
    MessageSerializer,
    PresenceSerializer,
    ReactionGroupSerializer,
)
from chat.services import (
    ConversationService,
    MessageService,
    PresenceService,
    ReactionService,
    TypingService,
)
from core.exceptions import ValidationError


class UnknownQueryError(ValidationError):
    default_error_code = "UNKNOWN_QUERY"


@dataclass(frozen=True)
class LiveQuery:
    name: str
    evaluate: Callable[[Any, dict], Any]
    topics: Callable[[int | None, dict], list[str]]
    refresh_seconds: float | None = None


def _int(args: dict, key: str) -> int | None:
    value = args.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{key} must be an integer", error_code="INVALID_ARGUMENT") from e


def _required_int(args: dict, key: str) -> int:
    value = _int(args, key)
    if value is None:
        raise ValidationError(f"{key} is required", error_code="INVALID_ARGUMENT")
    return value


def _maybe(serializer_class, instance):
    return serializer_class(instance).data if instance is not None else None


# =============================================================================
# Evaluators
# =============================================================================


def _current_user(identity, args):
    return _maybe(
        UserSerializer,
        IdentityService.get_current_user(identity, args.get("external_id")),
    )


def _search_users(identity, args):
    page = UserDirectoryService.search_users(
        identity,
        search=args.get("search"),
        cursor=_int(args, "cursor"),
        limit=_int(args, "limit"),
    )
    return UserPageSerializer(page).data


def _conversations(identity, args):
    page = ConversationService.get_conversations(
        identity,
        user_id=_required_int(args, "user_id"),
        cursor=_int(args, "cursor"),
        limit=_int(args, "limit"),
    )
    return ConversationPageSerializer(page).data


def _conversation(identity, args):
    return _maybe(
        ConversationSerializer,
        ConversationService.get_conversation(
            identity, conversation_id=_required_int(args, "conversation_id")
        ),
    )


def _conversation_members(identity, args):
    users = ConversationService.get_conversation_members(
        identity, conversation_id=_required_int(args, "conversation_id")
    )
    return UserSerializer(users, many=True).data


def _messages(identity, args):
    page = MessageService.get_messages(
        identity,
        conversation_id=_required_int(args, "conversation_id"),
        cursor=args.get("cursor") or None,
        limit=_int(args, "limit"),
    )
    return MessagePageSerializer(page).data


def _latest_message(identity, args):
    return _maybe(
        MessageSerializer,
        MessageService.get_latest_message(
            identity, conversation_id=_required_int(args, "conversation_id")
        ),
    )


def _unread_count(identity, args):
    return MessageService.get_unread_count(
        identity,
        conversation_id=_required_int(args, "conversation_id"),
        user_id=_int(args, "user_id"),
    )


def _reactions(identity, args):
    groups = ReactionService.get_reactions(
        identity, message_id=_required_int(args, "message_id")
    )
    return ReactionGroupSerializer(groups, many=True).data


def _typing_users(identity, args):
    users = TypingService.get_typing_users(
        identity,
        conversation_id=_required_int(args, "conversation_id"),
        exclude_user_id=_int(args, "exclude_user_id"),
    )
    return UserSerializer(users, many=True).data


def _user_presence(identity, args):
    return _maybe(
        PresenceSerializer,
        PresenceService.get_user_presence(identity, user_id=_required_int(args, "user_id")),
    )


def _online_users(identity, args):
    return PresenceService.get_online_users(identity)


# =============================================================================
# Registry
# =============================================================================


def _conversation_scoped(*topic_builders):
    def topics(caller_id, args):
        conversation_id = _required_int(args, "conversation_id")
        return [build(conversation_id) for build in topic_builders]

    return topics


def _unread_topics(caller_id, args):
    conversation_id = _required_int(args, "conversation_id")
    user_id = _int(args, "user_id") or caller_id
    topics = [conversation_topic(conversation_id)]
    if user_id is not None:
        topics.append(inbox_topic(user_id))
    return topics


LIVE_QUERIES: dict[str, LiveQuery] = {
    query.name: query
    for query in (
        LiveQuery("getCurrentUser", _current_user, lambda caller_id, args: [DIRECTORY_TOPIC]),
        LiveQuery("searchUsers", _search_users, lambda caller_id, args: [DIRECTORY_TOPIC]),
        LiveQuery(
            "getConversations",
            _conversations,
            lambda caller_id, args: [inbox_topic(_required_int(args, "user_id"))],
        ),
        LiveQuery(
            "getConversation",
            _conversation,
            _conversation_scoped(conversation_topic),
        ),
        LiveQuery(
            "getConversationMembers",
            _conversation_members,
            lambda caller_id, args: [
                conversation_topic(_required_int(args, "conversation_id")),
                DIRECTORY_TOPIC,
            ],
        ),
        LiveQuery(
            "getMessages",
            _messages,
            _conversation_scoped(messages_topic, conversation_topic),
        ),
        LiveQuery(
            "getLatestMessage",
            _latest_message,
            _conversation_scoped(messages_topic, conversation_topic),
        ),
        LiveQuery("getUnreadCount", _unread_count, _unread_topics),
        LiveQuery(
            "getReactions",
            _reactions,
            lambda caller_id, args: [reactions_topic(_required_int(args, "message_id"))],
        ),
        LiveQuery(
            "getTypingUsers",
            _typing_users,
            _conversation_scoped(typing_topic, conversation_topic),
            refresh_seconds=TYPING_CONFIG.WINDOW_SECONDS / 2,
        ),
        LiveQuery(
            "getUserPresence",
            _user_presence,
            lambda caller_id, args: [presence_topic(_required_int(args, "user_id"))],
        ),
        LiveQuery("getOnlineUsers", _online_users, lambda caller_id, args: [ONLINE_USERS_TOPIC]),
    )
}


def get_live_query(name: str) -> LiveQuery:
    """
    Look up a registered live query.

    Raises:
        UnknownQueryError: No query with that name
    """
    try:
        return LIVE_QUERIES[name]
    except KeyError as e:
        raise UnknownQueryError(f"Unknown query: {name}") from e
