"""
Change events for live query subscriptions.

Mutations publish the topics they touched; the LiveQueryConsumer
re-evaluates subscriptions that depend on those topics and pushes results
that changed.

Topics:
    conversation.<conversation_id>  Conversation record or membership changed
    messages.<conversation_id>      Message page contents changed
    reactions.<message_id>          Reactions on a message changed
    typing.<conversation_id>        Typing signals changed
    presence.<user_id>              A user's presence changed
    presence.online                 The set of online users changed
    inbox.<user_id>                 A user's conversation list or unread counts changed
    directory                       A user record was created or updated

Events are sent after the surrounding transaction commits, so subscribers
never observe uncommitted state and a rolled-back mutation publishes nothing.
Publishing failures are logged and do not affect the committed write.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

logger = logging.getLogger(__name__)

GROUP_PREFIX = "live"
CHANGE_EVENT_TYPE = "change.event"


def conversation_topic(conversation_id: int) -> str:
    return f"conversation.{conversation_id}"


def messages_topic(conversation_id: int) -> str:
    return f"messages.{conversation_id}"


def reactions_topic(message_id: int) -> str:
    return f"reactions.{message_id}"


def typing_topic(conversation_id: int) -> str:
    return f"typing.{conversation_id}"


def presence_topic(user_id: int) -> str:
    return f"presence.{user_id}"


def inbox_topic(user_id: int) -> str:
    return f"inbox.{user_id}"


ONLINE_USERS_TOPIC = "presence.online"
DIRECTORY_TOPIC = "directory"


def group_name(topic: str) -> str:
    """Channel layer group for a topic."""
    return f"{GROUP_PREFIX}.{topic}"


def inbox_topics(user_ids: Iterable[int]) -> list[str]:
    return [inbox_topic(user_id) for user_id in user_ids]


def publish_change(topics: Iterable[str]) -> None:
    """
    Publish change events for the given topics once the transaction commits.

    Outside a transaction the events are sent immediately.
    """
    unique_topics = list(dict.fromkeys(topics))
    if not unique_topics:
        return
    transaction.on_commit(lambda: _send(unique_topics))


def _send(topics: list[str]) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return

    for topic in topics:
        try:
            async_to_sync(channel_layer.group_send)(
                group_name(topic),
                {"type": CHANGE_EVENT_TYPE, "topic": topic},
            )
        except Exception:
            logger.exception(f"Failed to publish change event for {topic}")

    logger.debug(f"Published change events: {topics}")
