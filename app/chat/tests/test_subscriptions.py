"""
Tests for the live query registry.

Evaluators are plain synchronous functions, so they are exercised here
without a socket; test_consumers.py covers the transport.
"""

import pytest

from chat.events import (
    DIRECTORY_TOPIC,
    ONLINE_USERS_TOPIC,
    conversation_topic,
    inbox_topic,
    messages_topic,
    typing_topic,
)
from chat.services import MessageService
from chat.subscriptions import LIVE_QUERIES, UnknownQueryError, get_live_query
from core.exceptions import ValidationError


class TestRegistry:
    def test_lookup(self):
        assert get_live_query("getMessages").name == "getMessages"

    def test_unknown_query(self):
        with pytest.raises(UnknownQueryError) as exc_info:
            get_live_query("nope")

        assert exc_info.value.error_code == "UNKNOWN_QUERY"

    def test_every_query_names_its_topics(self):
        args = {"conversation_id": 1, "message_id": 2, "user_id": 3}

        for query in LIVE_QUERIES.values():
            assert query.topics(3, args), query.name

    def test_topics(self):
        args = {"conversation_id": 7}

        assert get_live_query("getMessages").topics(1, args) == [
            messages_topic(7),
            conversation_topic(7),
        ]
        assert get_live_query("getTypingUsers").topics(1, args) == [
            typing_topic(7),
            conversation_topic(7),
        ]
        assert get_live_query("getUnreadCount").topics(5, args) == [
            conversation_topic(7),
            inbox_topic(5),
        ]
        assert get_live_query("getOnlineUsers").topics(1, {}) == [ONLINE_USERS_TOPIC]
        assert get_live_query("searchUsers").topics(1, {}) == [DIRECTORY_TOPIC]

    def test_typing_is_refreshed_on_a_timer(self):
        assert get_live_query("getTypingUsers").refresh_seconds == 2
        assert get_live_query("getMessages").refresh_seconds is None

    def test_bad_argument(self):
        with pytest.raises(ValidationError) as exc_info:
            get_live_query("getMessages").topics(1, {"conversation_id": "seven"})

        assert exc_info.value.error_code == "INVALID_ARGUMENT"


class TestEvaluate:
    def test_get_conversations(self, alice, alice_identity, direct):
        data = get_live_query("getConversations").evaluate(
            alice_identity, {"user_id": alice.pk}
        )

        assert [c["id"] for c in data["conversations"]] == [direct.pk]
        assert data["conversations"][0]["unread_count"] == 0

    def test_get_messages_hides_deleted_content(self, alice, alice_identity, direct):
        message_id = MessageService.send_message(
            alice_identity, conversation_id=direct.pk, sender_id=alice.pk, content="secret"
        ).data
        MessageService.delete_message(alice_identity, message_id=message_id)

        data = get_live_query("getMessages").evaluate(
            alice_identity, {"conversation_id": direct.pk}
        )

        assert data["messages"][0]["deleted"] is True
        assert data["messages"][0]["content"] is None

    def test_get_unread_count(self, alice, alice_identity, bob_identity, direct):
        MessageService.send_message(
            alice_identity, conversation_id=direct.pk, sender_id=alice.pk, content="hi"
        )

        assert get_live_query("getUnreadCount").evaluate(
            bob_identity, {"conversation_id": direct.pk}
        ) == 1

    def test_get_current_user(self, alice, alice_identity):
        data = get_live_query("getCurrentUser").evaluate(alice_identity, {})

        assert data["id"] == alice.pk

    def test_get_user_presence(self, alice_identity, bob):
        data = get_live_query("getUserPresence").evaluate(alice_identity, {"user_id": bob.pk})

        assert data == {"online": False, "last_seen": None}

    def test_search_users_clamps_negative_limit(self, alice_identity, bob, carol):
        """
        Why it matters: Live query arguments bypass the REST serializer, so a
        bad page size must be clamped rather than reach the ORM slice.
        """
        data = get_live_query("searchUsers").evaluate(alice_identity, {"limit": -5})

        assert len(data["users"]) == 1
        assert data["next_cursor"] == 1
