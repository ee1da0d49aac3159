"""
ViewSets for chat API.

This module provides REST API endpoints for the messaging core:
- ConversationViewSet: Conversations, membership, messages, unread, typing
- MessageViewSet: Message deletion and reactions
- Presence views: Online status, heartbeat, per-user presence

URL Structure:
    /api/v1/chat/conversations/                              GET
    /api/v1/chat/conversations/direct/                       POST
    /api/v1/chat/conversations/group/                        POST
    /api/v1/chat/conversations/{id}/                         GET, DELETE
    /api/v1/chat/conversations/{id}/group/                   DELETE
    /api/v1/chat/conversations/{id}/members/                 GET, POST
    /api/v1/chat/conversations/{id}/members/{user_id}/       DELETE
    /api/v1/chat/conversations/{id}/messages/                GET, POST
    /api/v1/chat/conversations/{id}/messages/latest/         GET
    /api/v1/chat/conversations/{id}/read/                    POST
    /api/v1/chat/conversations/{id}/unread/                  GET, POST
    /api/v1/chat/conversations/{id}/typing/                  GET, POST, DELETE
    /api/v1/chat/messages/{id}/                              DELETE
    /api/v1/chat/messages/{id}/reactions/                    GET, POST
    /api/v1/chat/presence/                                   GET, POST, DELETE
    /api/v1/chat/presence/heartbeat/                         POST
    /api/v1/chat/presence/{user_id}/                         GET

Design Decisions:
    - Views only shape requests and responses; services own authorization
    - request.user is the verified ExternalIdentity (or None) and is passed
      straight to the service
    - Mutations map failures through service_error_response
    - Queries answer 200 with an empty payload when the caller may not see
      the data
"""

from __future__ import annotations

import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.serializers import UserSerializer
from authentication.services import IdentityService
from chat.serializers import (
    ConversationPageParamsSerializer,
    ConversationPageSerializer,
    ConversationSerializer,
    DirectConversationCreateSerializer,
    GroupCreateSerializer,
    GroupMembersSerializer,
    MessageCreateSerializer,
    MessagePageParamsSerializer,
    MessagePageSerializer,
    MessageSerializer,
    PresenceSerializer,
    ReactionGroupSerializer,
    ReactionToggleSerializer,
    ReadReceiptSerializer,
    TypingSerializer,
)
from chat.services import (
    ConversationService,
    MessageService,
    PresenceService,
    ReactionService,
    TypingService,
)
from core.exceptions import ValidationError
from core.views import service_error_response


def _caller_id(request) -> int | None:
    """Internal id of the caller, for endpoints where the client omits it."""
    user = IdentityService.resolve_user(request.user)
    return user.pk if user else None


def _user_id_param(request) -> int | None:
    raw = request.data.get("user_id") or request.query_params.get("user_id")
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        parameters=[ConversationPageParamsSerializer],
        responses={200: ConversationPageSerializer},
        tags=["Chat - Conversations"],
    ),
    retrieve=extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        responses={200: ConversationSerializer},
        tags=["Chat - Conversations"],
    ),
    destroy=extend_schema(
        operation_id="delete_conversation",
        summary="Delete conversation",
        description="Any member may delete; the conversation is removed for everyone.",
        tags=["Chat - Conversations"],
    ),
)
class ConversationViewSet(viewsets.ViewSet):
    """
    ViewSet for conversation operations.

    list:
        The caller's conversations, most recently active first, each with
        member users, latest message and unread count.

    retrieve:
        Conversation with member users (null for non-members).

    destroy:
        Delete the conversation and everything in it for all members.

    direct / group:
        Open a direct conversation (idempotent) or create a group.

    members / remove_member / delete_group:
        Group administration.

    messages / latest_message / read / unread / typing:
        Message log and per-conversation signals.
    """

    lookup_value_regex = r"[0-9]+"

    def list(self, request):
        params = ConversationPageParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        user_id = _user_id_param(request) or _caller_id(request)
        page = ConversationService.get_conversations(
            request.user,
            user_id=user_id,
            cursor=params.validated_data.get("cursor"),
            limit=params.validated_data.get("limit"),
        )
        return Response(ConversationPageSerializer(page).data)

    def retrieve(self, request, pk=None):
        conversation = ConversationService.get_conversation(
            request.user, conversation_id=int(pk)
        )
        return Response(ConversationSerializer(conversation).data if conversation else None)

    def destroy(self, request, pk=None):
        result = ConversationService.delete_conversation(
            request.user, conversation_id=int(pk)
        )
        if not result.success:
            return service_error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="open_direct_conversation",
        summary="Open direct conversation",
        description=(
            "Return the direct conversation between the caller and another user, "
            "creating it on first use. Passing the caller's own id opens the "
            "self-chat."
        ),
        request=DirectConversationCreateSerializer,
        responses={
            200: OpenApiResponse(description="{conversation_id}"),
            404: OpenApiResponse(description="Other user not found"),
        },
        tags=["Chat - Conversations"],
    )
    @action(detail=False, methods=["post"])
    def direct(self, request):
        serializer = DirectConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.get_or_create_conversation(
            request.user,
            current_user_id=serializer.validated_data["current_user_id"],
            other_user_id=serializer.validated_data["other_user_id"],
        )
        if not result.success:
            return service_error_response(result)
        return Response({"conversation_id": result.data})

    @extend_schema(
        operation_id="create_group",
        summary="Create group",
        request=GroupCreateSerializer,
        responses={
            201: OpenApiResponse(description="{conversation_id}"),
            409: OpenApiResponse(description="More than 20 members"),
        },
        tags=["Chat - Groups"],
    )
    @action(detail=False, methods=["post"])
    def group(self, request):
        serializer = GroupCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.create_group(
            request.user,
            current_user_id=serializer.validated_data["current_user_id"],
            member_ids=serializer.validated_data["member_ids"],
            name=serializer.validated_data["name"],
        )
        if not result.success:
            return service_error_response(result)
        return Response({"conversation_id": result.data}, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="delete_group",
        summary="Delete group",
        description="Admin only.",
        tags=["Chat - Groups"],
    )
    @action(detail=True, methods=["delete"], url_path="group")
    def delete_group(self, request, pk=None):
        result = ConversationService.delete_group(request.user, conversation_id=int(pk))
        if not result.success:
            return service_error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="conversation_members",
        summary="List or add members",
        request=GroupMembersSerializer,
        responses={200: UserSerializer(many=True)},
        tags=["Chat - Groups"],
    )
    @action(detail=True, methods=["get", "post"])
    def members(self, request, pk=None):
        if request.method == "GET":
            users = ConversationService.get_conversation_members(
                request.user, conversation_id=int(pk)
            )
            return Response(UserSerializer(users, many=True).data)

        serializer = GroupMembersSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = ConversationService.add_group_members(
            request.user,
            conversation_id=int(pk),
            member_ids=serializer.validated_data["member_ids"],
        )
        if not result.success:
            return service_error_response(result)
        return Response({"added": result.data})

    @extend_schema(
        operation_id="remove_group_member",
        summary="Remove member",
        description="Admin removes any member; a member may remove themself.",
        tags=["Chat - Groups"],
    )
    @action(detail=True, methods=["delete"], url_path=r"members/(?P<member_id>[0-9]+)")
    def remove_member(self, request, pk=None, member_id=None):
        result = ConversationService.remove_group_member(
            request.user,
            conversation_id=int(pk),
            member_id=int(member_id),
        )
        if not result.success:
            return service_error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="conversation_messages",
        summary="List or send messages",
        description=(
            "GET returns the newest page without a cursor, or the page strictly "
            "older than continue_cursor. Messages are oldest first."
        ),
        parameters=[MessagePageParamsSerializer],
        request=MessageCreateSerializer,
        responses={200: MessagePageSerializer},
        tags=["Chat - Messages"],
    )
    @action(detail=True, methods=["get", "post"])
    def messages(self, request, pk=None):
        if request.method == "POST":
            serializer = MessageCreateSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            result = MessageService.send_message(
                request.user,
                conversation_id=int(pk),
                sender_id=serializer.validated_data["sender_id"],
                content=serializer.validated_data["content"],
            )
            if not result.success:
                return service_error_response(result)
            return Response({"message_id": result.data}, status=status.HTTP_201_CREATED)

        params = MessagePageParamsSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        try:
            page = MessageService.get_messages(
                request.user,
                conversation_id=int(pk),
                cursor=params.validated_data.get("cursor") or None,
                limit=params.validated_data.get("limit"),
            )
        except ValidationError as e:
            return service_error_response(
                MessageService.handle_exception(e, "get_messages", logging.WARNING)
            )
        return Response(MessagePageSerializer(page).data)

    @extend_schema(
        operation_id="latest_message",
        summary="Latest message",
        responses={200: MessageSerializer},
        tags=["Chat - Messages"],
    )
    @action(detail=True, methods=["get"], url_path="messages/latest")
    def latest_message(self, request, pk=None):
        message = MessageService.get_latest_message(request.user, conversation_id=int(pk))
        return Response(MessageSerializer(message).data if message else None)

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        request=ReadReceiptSerializer,
        tags=["Chat - Messages"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        serializer = ReadReceiptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MessageService.mark_messages_as_read(
            request.user,
            conversation_id=int(pk),
            user_id=serializer.validated_data["user_id"],
        )
        if not result.success:
            return service_error_response(result)
        return Response({"updated": result.data})

    @extend_schema(
        operation_id="conversation_unread",
        summary="Get or increment unread count",
        request=ReadReceiptSerializer,
        tags=["Chat - Messages"],
    )
    @action(detail=True, methods=["get", "post"])
    def unread(self, request, pk=None):
        if request.method == "GET":
            count = MessageService.get_unread_count(
                request.user,
                conversation_id=int(pk),
                user_id=_user_id_param(request),
            )
            return Response({"count": count})

        serializer = ReadReceiptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = MessageService.increment_unread_count(
            request.user,
            conversation_id=int(pk),
            user_id=serializer.validated_data["user_id"],
        )
        if not result.success:
            return service_error_response(result)
        return Response({"count": result.data})

    @extend_schema(
        operation_id="conversation_typing",
        summary="Typing indicators",
        description=(
            "GET lists users currently typing (excluding the caller). POST marks "
            "the caller as typing for a few seconds; DELETE clears it."
        ),
        parameters=[
            OpenApiParameter(
                name="exclude_user_id",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
            ),
        ],
        request=TypingSerializer,
        responses={200: UserSerializer(many=True)},
        tags=["Chat - Typing"],
    )
    @action(detail=True, methods=["get", "post", "delete"])
    def typing(self, request, pk=None):
        if request.method == "GET":
            exclude = request.query_params.get("exclude_user_id")
            users = TypingService.get_typing_users(
                request.user,
                conversation_id=int(pk),
                exclude_user_id=int(exclude) if exclude and exclude.isdigit() else None,
            )
            return Response(UserSerializer(users, many=True).data)

        if request.method == "DELETE":
            result = TypingService.clear_typing(
                request.user,
                conversation_id=int(pk),
                user_id=_user_id_param(request) or _caller_id(request),
            )
            if not result.success:
                return service_error_response(result)
            return Response(status=status.HTTP_204_NO_CONTENT)

        serializer = TypingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = TypingService.set_typing(
            request.user,
            conversation_id=int(pk),
            user_id=serializer.validated_data["user_id"],
        )
        if not result.success:
            return service_error_response(result)
        return Response({"expires_at": result.data})


@extend_schema_view(
    destroy=extend_schema(
        operation_id="delete_message",
        summary="Delete message",
        description="Sender only. The message is flagged deleted; content is hidden.",
        tags=["Chat - Messages"],
    ),
)
class MessageViewSet(viewsets.ViewSet):
    """
    ViewSet for message-scoped operations.

    destroy:
        Logical deletion by the sender.

    reactions:
        GET grouped reactions; POST toggles one emoji for the caller.
    """

    lookup_value_regex = r"[0-9]+"

    def destroy(self, request, pk=None):
        result = MessageService.delete_message(request.user, message_id=int(pk))
        if not result.success:
            return service_error_response(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="message_reactions",
        summary="List or toggle reactions",
        request=ReactionToggleSerializer,
        responses={200: ReactionGroupSerializer(many=True)},
        tags=["Chat - Reactions"],
    )
    @action(detail=True, methods=["get", "post"])
    def reactions(self, request, pk=None):
        if request.method == "GET":
            groups = ReactionService.get_reactions(request.user, message_id=int(pk))
            return Response(ReactionGroupSerializer(groups, many=True).data)

        serializer = ReactionToggleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = ReactionService.add_reaction(
            request.user,
            message_id=int(pk),
            user_id=serializer.validated_data["user_id"],
            emoji=serializer.validated_data["emoji"],
        )
        if not result.success:
            return service_error_response(result)
        return Response({"reaction_id": result.data, "added": result.data is not None})


# =============================================================================
# Presence Views
# =============================================================================


class PresenceView(APIView):
    """
    Caller's presence and the online user list.

    GET    /api/v1/chat/presence/   Ids of users currently online
    POST   /api/v1/chat/presence/   Mark the caller online
    DELETE /api/v1/chat/presence/   Mark the caller offline
    """

    @extend_schema(
        operation_id="list_online_users",
        summary="List online users",
        responses={200: OpenApiResponse(description="List of user ids")},
        tags=["Chat - Presence"],
    )
    def get(self, request):
        return Response(PresenceService.get_online_users(request.user))

    @extend_schema(
        operation_id="set_online",
        summary="Go online",
        request=None,
        responses={200: PresenceSerializer},
        tags=["Chat - Presence"],
    )
    def post(self, request):
        result = PresenceService.set_online(request.user)
        if not result.success:
            return service_error_response(result)
        return Response(PresenceSerializer(result.data).data)

    @extend_schema(
        operation_id="set_offline",
        summary="Go offline",
        request=None,
        responses={200: PresenceSerializer},
        tags=["Chat - Presence"],
    )
    def delete(self, request):
        result = PresenceService.set_offline(request.user)
        if not result.success:
            return service_error_response(result)
        return Response(PresenceSerializer(result.data).data)


class HeartbeatView(APIView):
    """
    Keep the caller's presence alive.

    POST /api/v1/chat/presence/heartbeat/
    """

    @extend_schema(
        operation_id="send_heartbeat",
        summary="Send presence heartbeat",
        description=(
            "Refresh last_seen. Clients call this every 30 seconds while open; "
            "users silent for 60 seconds are swept offline."
        ),
        request=None,
        responses={200: PresenceSerializer},
        tags=["Chat - Presence"],
    )
    def post(self, request):
        result = PresenceService.heartbeat(request.user)
        if not result.success:
            return service_error_response(result)
        return Response(PresenceSerializer(result.data).data)


class UserPresenceView(APIView):
    """
    Presence of a specific user.

    GET /api/v1/chat/presence/{user_id}/
    """

    @extend_schema(
        operation_id="get_user_presence",
        summary="Get user presence",
        parameters=[
            OpenApiParameter(
                name="user_id",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.PATH,
            ),
        ],
        responses={200: PresenceSerializer},
        tags=["Chat - Presence"],
    )
    def get(self, request, user_id):
        presence = PresenceService.get_user_presence(request.user, user_id=user_id)
        return Response(PresenceSerializer(presence).data if presence else None)
