"""
URL configuration for the identity bridge and user directory.

URL structure:
    /api/v1/users/sync/     - Create or update the caller's user record
    /api/v1/users/me/       - Current user (GET/PATCH)
    /api/v1/users/search/   - Directory search
    /api/v1/users/{id}/     - User by internal id
"""

from django.urls import path

from authentication.views import (
    CurrentUserView,
    IdentitySyncView,
    UserDetailView,
    UserSearchView,
)

app_name = "authentication"

urlpatterns = [
    path("sync/", IdentitySyncView.as_view(), name="sync"),
    path("me/", CurrentUserView.as_view(), name="me"),
    path("search/", UserSearchView.as_view(), name="search"),
    path("<int:user_id>/", UserDetailView.as_view(), name="detail"),
]
