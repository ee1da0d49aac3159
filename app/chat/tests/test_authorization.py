"""
Tests for chat authorization decorators.

Why it matters: Every chat entry point re-derives the caller from the
verified identity. These tests pin down what each decorator injects and how
it fails, independent of the services built on top.
"""

from authentication.tests.factories import UserFactory, identity_for
from chat.authorization import (
    ChatAuthorizationService,
    member_query,
    require_caller,
    require_conversation_member,
    require_message_member,
)
from chat.tests.factories import MessageFactory
from core.services import ServiceResult


class Probe:
    @classmethod
    @require_caller()
    def whoami(cls, identity, *, _caller=None):
        return ServiceResult.success(_caller.pk)

    @classmethod
    @require_conversation_member()
    def in_conversation(cls, identity, *, conversation_id, _caller=None, _conversation=None):
        return ServiceResult.success(_conversation.pk)

    @classmethod
    @require_message_member()
    def on_message(cls, identity, *, message_id, _caller=None, _message=None):
        return ServiceResult.success(_message.pk)

    @classmethod
    @member_query(empty=list, conversation_id_param="conversation_id")
    def peek(cls, identity, *, conversation_id, _caller=None, _conversation=None):
        return [_caller.pk]


class TestResolveCaller:
    def test_resolves_synced_identity(self, alice, alice_identity):
        assert ChatAuthorizationService.resolve_caller(alice_identity) == alice

    def test_none_identity(self, db):
        assert ChatAuthorizationService.resolve_caller(None) is None

    def test_inactive_user_is_not_a_caller(self, db):
        user = UserFactory(is_active=False)

        assert ChatAuthorizationService.resolve_caller(identity_for(user)) is None


class TestRequireCaller:
    def test_injects_caller(self, alice, alice_identity):
        assert Probe.whoami(alice_identity).data == alice.pk

    def test_identity_as_keyword(self, alice, alice_identity):
        assert Probe.whoami(identity=alice_identity).data == alice.pk

    def test_unauthenticated(self, db):
        result = Probe.whoami(None)

        assert not result.success
        assert result.error_code == "UNAUTHENTICATED"


class TestRequireConversationMember:
    def test_member_passes(self, group, bob_identity):
        assert Probe.in_conversation(bob_identity, conversation_id=group.pk).data == group.pk

    def test_non_member(self, group, outsider_identity):
        result = Probe.in_conversation(outsider_identity, conversation_id=group.pk)

        assert result.error_code == "NOT_MEMBER"

    def test_missing_conversation(self, alice_identity):
        result = Probe.in_conversation(alice_identity, conversation_id=999999)

        assert result.error_code == "CONVERSATION_NOT_FOUND"


class TestRequireMessageMember:
    def test_member_passes(self, group, alice, bob_identity):
        message = MessageFactory(conversation=group, sender=alice)

        assert Probe.on_message(bob_identity, message_id=message.pk).data == message.pk

    def test_non_member(self, group, alice, outsider_identity):
        message = MessageFactory(conversation=group, sender=alice)

        result = Probe.on_message(outsider_identity, message_id=message.pk)

        assert result.error_code == "NOT_MEMBER"

    def test_missing_message(self, alice_identity):
        result = Probe.on_message(alice_identity, message_id=999999)

        assert result.error_code == "MESSAGE_NOT_FOUND"


class TestMemberQuery:
    def test_member_gets_result(self, group, alice, alice_identity):
        assert Probe.peek(alice_identity, conversation_id=group.pk) == [alice.pk]

    def test_fails_soft(self, group, outsider_identity):
        assert Probe.peek(outsider_identity, conversation_id=group.pk) == []
        assert Probe.peek(None, conversation_id=group.pk) == []
        assert Probe.peek(outsider_identity, conversation_id=999999) == []
