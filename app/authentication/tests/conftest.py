"""
Test configuration and fixtures for authentication tests.

This module provides:
- User fixtures and the identities they sign in with
- API client helpers for authenticated requests
- Signed identity tokens for backend tests

Usage:
    def test_example(user_client):
        response = user_client.get("/api/v1/users/me/")
        assert response.status_code == 200
"""

from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from authentication.backends import ExternalIdentity, get_token_backend
from authentication.tests.factories import UserFactory, identity_for


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a synced user."""
    return UserFactory(name="Ada Lovelace", email="ada@example.com")


@pytest.fixture
def other_user(db):
    return UserFactory(name="Grace Hopper", email="grace@example.com")


@pytest.fixture
def identity(user):
    """Identity carried by requests from ``user``."""
    return identity_for(user)


@pytest.fixture
def unsynced_identity(db):
    """A verified identity with no User row yet (first login)."""
    return ExternalIdentity(
        subject="user_new",
        email="new@example.com",
        name="New Person",
        picture="https://img.example.com/new.png",
    )


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def user_client(identity):
    """API client authenticated as ``user``."""
    client = APIClient()
    client.force_authenticate(user=identity)
    return client


# =============================================================================
# Token Fixtures
# =============================================================================


@pytest.fixture
def make_identity_token():
    """
    Sign identity tokens the way the provider would.

    Usage:
        token = make_identity_token(sub="user_0001", email="a@example.com")
    """

    def _make(expires_in=timedelta(minutes=5), **claims):
        payload = {"exp": timezone.now() + expires_in, **claims}
        return get_token_backend().encode(payload)

    return _make
