"""
Tests for identity token verification.

Covers verify_identity_token and the DRF authentication class. Tokens are
signed with the configured IDENTITY_TOKEN key through simplejwt's
TokenBackend, the same way the identity provider signs them.
"""

from datetime import timedelta

import pytest
from rest_framework import exceptions
from rest_framework.test import APIRequestFactory

from authentication.backends import (
    ExternalIdentity,
    IdentityTokenAuthentication,
    verify_identity_token,
)
from core.exceptions import IdentityTokenError


class TestVerifyIdentityToken:
    def test_valid_token_yields_identity(self, make_identity_token):
        token = make_identity_token(
            sub="user_0042",
            email="ada@example.com",
            name="Ada",
            picture="https://img.example.com/ada.png",
        )

        identity = verify_identity_token(token)

        assert identity == ExternalIdentity(
            subject="user_0042",
            email="ada@example.com",
            name="Ada",
            picture="https://img.example.com/ada.png",
        )
        assert identity.is_authenticated is True

    def test_expired_token_is_rejected(self, make_identity_token):
        token = make_identity_token(sub="user_0042", expires_in=timedelta(minutes=-10))

        with pytest.raises(IdentityTokenError):
            verify_identity_token(token)

    def test_tampered_token_is_rejected(self, make_identity_token):
        token = make_identity_token(sub="user_0042")

        with pytest.raises(IdentityTokenError):
            verify_identity_token(token[:-4] + "AAAA")

    def test_token_without_subject_is_rejected(self, make_identity_token):
        """
        Why it matters: The subject is the only link to an internal user;
        a token without one must not authenticate anybody.
        """
        token = make_identity_token(email="nobody@example.com")

        with pytest.raises(IdentityTokenError) as exc_info:
            verify_identity_token(token)

        assert exc_info.value.error_code == "MISSING_SUBJECT"


class TestIdentityTokenAuthentication:
    def _request(self, header=None):
        factory = APIRequestFactory()
        if header is None:
            return factory.get("/")
        return factory.get("/", HTTP_AUTHORIZATION=header)

    def test_no_header_is_anonymous(self):
        assert IdentityTokenAuthentication().authenticate(self._request()) is None

    def test_other_scheme_is_ignored(self):
        request = self._request("Token abc123")

        assert IdentityTokenAuthentication().authenticate(request) is None

    def test_bearer_token_authenticates(self, make_identity_token):
        request = self._request(f"Bearer {make_identity_token(sub='user_7')}")

        identity, auth = IdentityTokenAuthentication().authenticate(request)

        assert identity.subject == "user_7"
        assert auth is None

    def test_invalid_bearer_token_fails(self):
        request = self._request("Bearer not-a-jwt")

        with pytest.raises(exceptions.AuthenticationFailed):
            IdentityTokenAuthentication().authenticate(request)

    def test_header_with_extra_parts_fails(self):
        request = self._request("Bearer a b")

        with pytest.raises(exceptions.AuthenticationFailed):
            IdentityTokenAuthentication().authenticate(request)
