"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/live/ - Live query subscriptions (one socket per client)

Authentication:
    The identity token is passed as ?token=<jwt> or via the "jwt"
    subprotocol. IdentityTokenAuthMiddleware verifies it and attaches the
    identity to the consumer's scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/live/", consumers.LiveQueryConsumer.as_asgi()),
]
