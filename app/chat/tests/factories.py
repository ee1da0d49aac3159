"""
Factory Boy factories for chat models.

Provides realistic test data generation for:
- Conversation: Direct and group conversations
- ConversationMember: User membership in conversations
- Message: Text messages

Factories write rows directly and skip the services, so they do not bump
unread counters or publish change events. Tests of those behaviours go
through the services instead.

Usage:
    from chat.tests.factories import (
        GroupConversationFactory,
        ConversationMemberFactory,
        MessageFactory,
    )

    group = GroupConversationFactory(admin=user)
    ConversationMemberFactory(conversation=group, user=user)
    message = MessageFactory(conversation=group, sender=user)
"""

import factory

from authentication.tests.factories import UserFactory
from chat.models import (
    Conversation,
    ConversationMember,
    ConversationType,
    Message,
)


class ConversationFactory(factory.django.DjangoModelFactory):
    """
    Base factory for Conversation model.

    Creates a direct conversation without a pair row by default; use
    GroupConversationFactory for groups.
    """

    class Meta:
        model = Conversation

    conversation_type = ConversationType.DIRECT
    name = ""
    admin = None


class GroupConversationFactory(ConversationFactory):
    """
    Factory for group conversations.

    Examples:
        # Group with a generated admin
        group = GroupConversationFactory()

        # Group whose admin is already a member
        group = GroupConversationFactory(admin=user, members=[user, other])
    """

    conversation_type = ConversationType.GROUP
    name = factory.Sequence(lambda n: f"Group {n}")
    admin = factory.SubFactory(UserFactory)

    @factory.post_generation
    def members(self, create, extracted, **kwargs):
        if not create or not extracted:
            return
        for user in extracted:
            ConversationMember.objects.get_or_create(conversation=self, user=user)


class ConversationMemberFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ConversationMember

    conversation = factory.SubFactory(GroupConversationFactory)
    user = factory.SubFactory(UserFactory)


class MessageFactory(factory.django.DjangoModelFactory):
    """
    Factory for Message model.

    Examples:
        message = MessageFactory(conversation=group, sender=user)
        deleted = MessageFactory(conversation=group, sender=user, deleted=True)
    """

    class Meta:
        model = Message

    conversation = factory.SubFactory(GroupConversationFactory)
    sender = factory.SubFactory(UserFactory)
    content = factory.Faker("sentence")
