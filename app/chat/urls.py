"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /conversations/                              GET
        /conversations/direct/                       POST
        /conversations/group/                        POST
        /conversations/{id}/                         GET, DELETE
        /conversations/{id}/group/                   DELETE
        /conversations/{id}/members/                 GET, POST
        /conversations/{id}/members/{user_id}/       DELETE

    Messages:
        /conversations/{id}/messages/                GET, POST
        /conversations/{id}/messages/latest/         GET
        /conversations/{id}/read/                    POST
        /conversations/{id}/unread/                  GET, POST
        /messages/{id}/                              DELETE

    Reactions:
        /messages/{id}/reactions/                    GET, POST

    Typing:
        /conversations/{id}/typing/                  GET, POST, DELETE

    Presence:
        /presence/                                   GET, POST, DELETE
        /presence/heartbeat/                         POST
        /presence/{user_id}/                         GET

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from chat.views import (
    ConversationViewSet,
    HeartbeatView,
    MessageViewSet,
    PresenceView,
    UserPresenceView,
)

router = DefaultRouter()
router.register(r"conversations", ConversationViewSet, basename="conversation")
router.register(r"messages", MessageViewSet, basename="message")

app_name = "chat"

urlpatterns = [
    path("", include(router.urls)),
    path("presence/", PresenceView.as_view(), name="presence"),
    path("presence/heartbeat/", HeartbeatView.as_view(), name="presence-heartbeat"),
    path("presence/<int:user_id>/", UserPresenceView.as_view(), name="presence-user"),
]
