"""
Identity bridge and user directory views.

Endpoints:
    POST  /api/v1/users/sync/    - Create or update the caller's user record
    GET   /api/v1/users/me/      - Current user (null when not synced yet)
    PATCH /api/v1/users/me/      - Update name / avatar
    GET   /api/v1/users/search/  - Search the directory
    GET   /api/v1/users/{id}/    - User by internal id

Related files:
    - serializers.py: Request/response serialization
    - services.py: IdentityService, UserDirectoryService
    - backends.py: request.user is the verified ExternalIdentity (or None)

Note:
    Queries return 200 with null/empty payloads for unauthenticated callers.
    Mutations return 401/403 via service_error_response.
"""

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.serializers import (
    IdentitySyncSerializer,
    ProfileUpdateSerializer,
    UserPageSerializer,
    UserSearchParamsSerializer,
    UserSerializer,
)
from authentication.services import IdentityService, UserDirectoryService
from core.views import service_error_response


class IdentitySyncView(APIView):
    """
    Create-or-update the caller's user record from identity provider data.

    URL: /api/v1/users/sync/
    """

    @extend_schema(
        summary="Sync current user",
        description=(
            "Create the internal user on first login, or update email, name "
            "and avatar when they diverge from the identity provider."
        ),
        tags=["Users"],
        request=IdentitySyncSerializer,
        responses={200: UserSerializer, 201: UserSerializer},
    )
    def post(self, request):
        serializer = IdentitySyncSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        identity = request.user

        existed = IdentityService.resolve_user(identity) is not None
        result = IdentityService.create_or_get_user(
            identity,
            external_id=data.get("external_id") or getattr(identity, "subject", ""),
            email=data.get("email") or getattr(identity, "email", ""),
            name=data.get("name") or getattr(identity, "name", ""),
            avatar=data.get("avatar") or getattr(identity, "picture", ""),
        )
        if not result.success:
            return service_error_response(result)

        return Response(
            UserSerializer(result.data).data,
            status=status.HTTP_200_OK if existed else status.HTTP_201_CREATED,
        )


class CurrentUserView(APIView):
    """
    Current user record.

    URL: /api/v1/users/me/
    """

    @extend_schema(
        summary="Get current user",
        tags=["Users"],
        parameters=[
            OpenApiParameter("external_id", str, description="Optional subject check"),
        ],
        responses={200: UserSerializer},
    )
    def get(self, request):
        user = IdentityService.get_current_user(
            request.user, request.query_params.get("external_id")
        )
        return Response(UserSerializer(user).data if user else None)

    @extend_schema(
        summary="Update current user",
        tags=["Users"],
        request=ProfileUpdateSerializer,
        responses={200: UserSerializer},
    )
    def patch(self, request):
        serializer = ProfileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        identity = request.user

        result = IdentityService.update_user_by_external_id(
            identity,
            external_id=getattr(identity, "subject", ""),
            name=serializer.validated_data.get("name"),
            avatar=serializer.validated_data.get("avatar"),
        )
        if not result.success:
            return service_error_response(result)
        return Response(UserSerializer(result.data).data if result.data else None)


class UserSearchView(APIView):
    """
    Directory search.

    URL: /api/v1/users/search/?search=ada&cursor=15&limit=15
    """

    @extend_schema(
        summary="Search users",
        description="Case-insensitive match on name or email, excluding the caller.",
        tags=["Users"],
        parameters=[UserSearchParamsSerializer],
        responses={200: UserPageSerializer},
    )
    def get(self, request):
        params = UserSearchParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        page = UserDirectoryService.search_users(request.user, **params.validated_data)
        return Response(UserPageSerializer(page).data)


class UserDetailView(APIView):
    """
    User by internal id.

    URL: /api/v1/users/{id}/
    """

    @extend_schema(summary="Get user", tags=["Users"], responses={200: UserSerializer})
    def get(self, request, user_id):
        user = IdentityService.get_user_by_id(request.user, user_id)
        return Response(UserSerializer(user).data if user else None)
