"""
ASGI config for the messaging backend.

This configuration supports:
- HTTP requests via Django (REST queries and mutations)
- WebSocket connections via Django Channels (live query subscriptions)

WebSocket connections are authenticated with the identity provider token
(query string or subprotocol) before they reach the consumer.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Initialize Django ASGI application early to ensure settings are loaded
# before importing any models or other Django components
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.security.websocket import AllowedHostsOriginValidator  # noqa: E402

from chat.middleware import IdentityTokenAuthMiddleware  # noqa: E402
from chat.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        # 1. AllowedHostsOriginValidator - ensures origin matches ALLOWED_HOSTS
        # 2. IdentityTokenAuthMiddleware - attaches the verified identity
        # 3. URLRouter - routes to the live query consumer
        "websocket": AllowedHostsOriginValidator(
            IdentityTokenAuthMiddleware(URLRouter(websocket_urlpatterns))
        ),
    }
)
