"""
Test configuration and fixtures for chat tests.

This module provides:
- Users and the identities they sign in with
- Conversation fixtures (direct and group), created through the services
- API client helpers for authenticated requests

Usage:
    def test_example(group, alice_client):
        response = alice_client.get(f"/api/v1/chat/conversations/{group.id}/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient

from authentication.tests.factories import UserFactory, identity_for
from chat.models import Conversation
from chat.services import ConversationService


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    """Group admin in most tests."""
    return UserFactory(name="Alice")


@pytest.fixture
def bob(db):
    return UserFactory(name="Bob")


@pytest.fixture
def carol(db):
    return UserFactory(name="Carol")


@pytest.fixture
def outsider(db):
    """A user who is not a member of any fixture conversation."""
    return UserFactory(name="Mallory")


@pytest.fixture
def alice_identity(alice):
    return identity_for(alice)


@pytest.fixture
def bob_identity(bob):
    return identity_for(bob)


@pytest.fixture
def carol_identity(carol):
    return identity_for(carol)


@pytest.fixture
def outsider_identity(outsider):
    return identity_for(outsider)


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def direct(alice, bob, alice_identity):
    """Direct conversation between alice and bob."""
    result = ConversationService.get_or_create_conversation(
        alice_identity, current_user_id=alice.pk, other_user_id=bob.pk
    )
    assert result.success
    return Conversation.objects.get(pk=result.data)


@pytest.fixture
def group(alice, bob, carol, alice_identity):
    """Group 'Team' administered by alice with bob and carol."""
    result = ConversationService.create_group(
        alice_identity,
        current_user_id=alice.pk,
        member_ids=[bob.pk, carol.pk],
        name="Team",
    )
    assert result.success
    return Conversation.objects.get(pk=result.data)


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


def _client_for(identity):
    client = APIClient()
    client.force_authenticate(user=identity)
    return client


@pytest.fixture
def alice_client(alice_identity):
    return _client_for(alice_identity)


@pytest.fixture
def bob_client(bob_identity):
    return _client_for(bob_identity)


@pytest.fixture
def outsider_client(outsider_identity):
    return _client_for(outsider_identity)
