"""
URL configuration for the messaging backend.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/users/                 - Identity bridge and user directory
        sync/                      - Create or update the caller's user record
        me/                        - Current user (GET/PATCH)
        search/                    - Search the user directory
        {id}/                      - User by internal id
    /api/v1/chat/                  - Chat endpoints
        conversations/             - List conversations
        conversations/direct/      - Get or create a direct conversation
        conversations/group/       - Create a group
        conversations/{id}/        - Conversation detail / delete
        conversations/{id}/members/ - Member list / add / remove
        conversations/{id}/group/  - Delete group
        conversations/{id}/messages/ - Message page / send
        conversations/{id}/read/   - Mark messages as read
        conversations/{id}/unread/ - Unread count
        conversations/{id}/typing/ - Typing users / set / clear
        messages/{id}/             - Delete message
        messages/{id}/reactions/   - Reaction groups / toggle
        presence/                  - Set online / offline, online users
        presence/{user_id}/        - Presence of a user
    ws/live/                       - WebSocket live query subscriptions

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("users/", include("authentication.urls")),
    path("chat/", include("chat.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Messaging Admin"
admin.site.site_title = "Messaging Admin Portal"
admin.site.index_title = "Conversations, messages and users"
