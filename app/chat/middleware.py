"""
WebSocket authentication middleware.

Verifies the identity provider token for WebSocket connections and attaches
the resulting ExternalIdentity to scope["user"].

Related files:
    - routing.py: WebSocket URL patterns
    - consumers.py: Live query consumer
    - authentication/backends.py: verify_identity_token (shared with HTTP)
    - config/asgi.py: ASGI configuration

Token Passing Methods:
    1. Query string: ws://host/ws/live/?token=<jwt_token>
    2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

Usage in config/asgi.py:
    from chat.middleware import IdentityTokenAuthMiddleware

    application = ProtocolTypeRouter({
        "websocket": IdentityTokenAuthMiddleware(
            URLRouter(websocket_urlpatterns)
        ),
    })
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser

from authentication.backends import verify_identity_token
from core.exceptions import IdentityTokenError

logger = logging.getLogger(__name__)


class IdentityTokenAuthMiddleware(BaseMiddleware):
    """
    Identity token authentication for WebSocket connections.

    Token sources (in order of precedence):
        1. Query string: ?token=<jwt_token>
        2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

    A missing or invalid token leaves the connection anonymous; the consumer
    decides whether to reject it.
    """

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token = self._get_token_from_query(scope) or self._get_token_from_subprotocol(scope)

        if token:
            scope["user"] = self._get_identity(token)
        else:
            scope["user"] = AnonymousUser()

        return await super().__call__(scope, receive, send)

    def _get_token_from_query(self, scope) -> str | None:
        query_string = scope.get("query_string", b"").decode()
        token_list = parse_qs(query_string).get("token", [])
        return token_list[0] if token_list else None

    def _get_token_from_subprotocol(self, scope) -> str | None:
        """Expects: Sec-WebSocket-Protocol: jwt, <token>"""
        subprotocols = scope.get("subprotocols", [])
        if len(subprotocols) >= 2 and subprotocols[0] == "jwt":
            return subprotocols[1]
        return None

    def _get_identity(self, token: str):
        # Signature verification only; no database access
        try:
            return verify_identity_token(token)
        except IdentityTokenError as e:
            logger.warning(f"WebSocket identity token rejected: {e}")
            return AnonymousUser()
