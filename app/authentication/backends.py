"""
Identity provider token verification.

The identity provider (not this service) issues signed JWTs. This module
verifies them and exposes the caller as an ExternalIdentity principal:

- verify_identity_token: shared verifier for HTTP and WebSocket transports
- IdentityTokenAuthentication: DRF authentication class (Authorization: Bearer)

The principal only carries the provider's subject and profile claims. It is
never an internal user id; services resolve the internal User from the
subject on every call.

Related files:
    - chat/middleware.py: WebSocket middleware using verify_identity_token
    - config/settings.py: IDENTITY_TOKEN verification settings
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from rest_framework import authentication, exceptions
from rest_framework_simplejwt.backends import TokenBackend
from rest_framework_simplejwt.exceptions import TokenBackendError

from core.exceptions import IdentityTokenError

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExternalIdentity:
    """
    Verified caller identity attached to request.user / scope["user"].

    Attributes:
        subject: Stable external user id (the token's subject claim)
        email: Email claim, if present
        name: Name claim, if present
        picture: Avatar URL claim, if present
    """

    subject: str
    email: str = ""
    name: str = ""
    picture: str = ""

    # DRF and Channels check these on request.user / scope["user"]
    is_authenticated = True
    is_anonymous = False

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> ExternalIdentity:
        subject = claims.get(settings.IDENTITY_TOKEN["SUBJECT_CLAIM"])
        if not subject:
            raise IdentityTokenError("Token has no subject claim", "MISSING_SUBJECT")
        return cls(
            subject=str(subject),
            email=claims.get("email") or "",
            name=claims.get("name") or "",
            picture=claims.get("picture") or claims.get("image_url") or "",
        )

    def __str__(self) -> str:
        return self.subject


def get_token_backend() -> TokenBackend:
    """Build a TokenBackend from the IDENTITY_TOKEN settings."""
    config = settings.IDENTITY_TOKEN
    return TokenBackend(
        config["ALGORITHM"],
        signing_key=config["SIGNING_KEY"],
        verifying_key=config["VERIFYING_KEY"],
        audience=config["AUDIENCE"],
        issuer=config["ISSUER"],
        leeway=config["LEEWAY"],
    )


def verify_identity_token(token: str) -> ExternalIdentity:
    """
    Verify an identity provider JWT and return the caller identity.

    Args:
        token: Raw JWT string

    Returns:
        ExternalIdentity for the token's subject

    Raises:
        IdentityTokenError: Signature, expiry, audience or issuer check failed,
            or the token carries no subject
    """
    try:
        claims = get_token_backend().decode(token, verify=True)
    except TokenBackendError as e:
        logger.warning(f"Identity token rejected: {e}")
        raise IdentityTokenError(str(e)) from e

    return ExternalIdentity.from_claims(claims)


class IdentityTokenAuthentication(authentication.BaseAuthentication):
    """
    DRF authentication class for identity provider tokens.

    Reads ``Authorization: Bearer <token>``. A missing header leaves the
    request unauthenticated (request.user is None) so query endpoints can
    fail soft; a present but invalid token is rejected with 401.
    """

    keyword = "Bearer"

    def authenticate(self, request):
        header = authentication.get_authorization_header(request).split()
        if not header:
            return None

        header_types = settings.IDENTITY_TOKEN["AUTH_HEADER_TYPES"]
        if header[0].decode("latin-1") not in header_types:
            return None

        if len(header) != 2:
            raise exceptions.AuthenticationFailed(
                "Authorization header must contain exactly one token."
            )

        try:
            identity = verify_identity_token(header[1].decode("latin-1"))
        except IdentityTokenError as e:
            raise exceptions.AuthenticationFailed(e.message) from e

        return identity, None

    def authenticate_header(self, request):
        return self.keyword
