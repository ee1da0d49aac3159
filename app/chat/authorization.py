"""
Service-level authorization for chat operations.

Every chat entry point receives the transport-level identity (an
ExternalIdentity verified by authentication.backends, or None) and re-derives
the internal user from it. Client-supplied user ids are never trusted for
authorization; services compare them against the resolved caller.

Key Components:
    ChatAuthorizationService: Stateless membership and caller checks
    require_caller: Decorator for mutations that only need a signed-in caller
    require_conversation_member: Decorator for conversation-scoped mutations
    require_message_member: Decorator for message-scoped mutations
    member_query: Decorator for queries (fails soft with an empty result)

Error Codes (mutations):
    UNAUTHENTICATED: No identity, or the identity has no user record
    CONVERSATION_NOT_FOUND: Conversation does not exist
    MESSAGE_NOT_FOUND: Message does not exist
    NOT_MEMBER: Caller is not a member of the conversation

Queries never return these codes. They return the decorator's empty value
so the UI can degrade while identity and membership settle.

Usage:
    class MessageService(BaseService):
        @classmethod
        @require_conversation_member()
        def send_message(cls, identity, *, conversation_id, sender_id, content,
                         _caller=None, _conversation=None):
            # _caller and _conversation are injected by the decorator
            ...

        @classmethod
        @member_query(empty=list)
        def get_typing_users(cls, identity, *, conversation_id, _caller=None):
            ...
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Callable, TypeVar

from authentication.services import IdentityService
from core.services import ServiceResult

if TYPE_CHECKING:
    from authentication.backends import ExternalIdentity
    from authentication.models import User
    from chat.models import Conversation, Message


logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChatAuthorizationService:
    """
    Stateless authorization checks for chat operations.

    Methods return plain values so decorators and services can compose them.
    """

    @classmethod
    def resolve_caller(cls, identity: ExternalIdentity | None) -> User | None:
        """
        Resolve the internal user for the verified identity.

        Returns None when unauthenticated or when the identity has not been
        synced to a user record.
        """
        return IdentityService.resolve_user(identity)

    @classmethod
    def is_conversation_member(cls, user: User, conversation_id: int) -> bool:
        """Check if user currently belongs to the conversation."""
        from chat.models import ConversationMember

        return ConversationMember.objects.filter(
            conversation_id=conversation_id,
            user=user,
        ).exists()

    @classmethod
    def get_member_ids(cls, conversation_id: int) -> list[int]:
        """User ids of all current members, in join order."""
        from chat.models import ConversationMember

        return list(
            ConversationMember.objects.filter(conversation_id=conversation_id)
            .order_by("joined_at", "id")
            .values_list("user_id", flat=True)
        )

    @classmethod
    def get_conversation_for_member(
        cls,
        user: User,
        conversation_id: int,
    ) -> tuple[Conversation | None, str | None]:
        """
        Load a conversation the user belongs to.

        Returns:
            (conversation, None) on success
            (None, "CONVERSATION_NOT_FOUND") if it does not exist
            (None, "NOT_MEMBER") if the user is not a member
        """
        from chat.models import Conversation

        conversation = Conversation.objects.filter(pk=conversation_id).first()
        if conversation is None:
            return None, "CONVERSATION_NOT_FOUND"
        if not cls.is_conversation_member(user, conversation_id):
            return None, "NOT_MEMBER"
        return conversation, None

    @classmethod
    def get_message_for_member(
        cls,
        user: User,
        message_id: int,
    ) -> tuple[Message | None, str | None]:
        """
        Load a message whose conversation the user belongs to.

        Deleted messages are returned; callers decide how to treat them.
        """
        from chat.models import Message

        message = Message.objects.select_related("conversation").filter(pk=message_id).first()
        if message is None:
            return None, "MESSAGE_NOT_FOUND"
        if not cls.is_conversation_member(user, message.conversation_id):
            return None, "NOT_MEMBER"
        return message, None


_FAILURE_MESSAGES = {
    "UNAUTHENTICATED": "Authentication required",
    "CONVERSATION_NOT_FOUND": "Conversation not found",
    "MESSAGE_NOT_FOUND": "Message not found",
    "NOT_MEMBER": "You are not a member of this conversation",
}


def _identity_from(args: tuple, kwargs: dict) -> ExternalIdentity | None:
    # Decorated classmethods are called as (cls, identity, ...)
    if "identity" in kwargs:
        return kwargs["identity"]
    return args[1] if len(args) > 1 else None


def _reject(func: Callable, error_code: str) -> ServiceResult:
    logger.warning(f"{func.__qualname__} rejected: {error_code}")
    return ServiceResult.failure(_FAILURE_MESSAGES[error_code], error_code=error_code)


def require_caller() -> Callable:
    """
    Decorator that requires a resolvable caller.

    Injects the caller as the ``_caller`` kwarg.

    Returns:
        ServiceResult.failure with UNAUTHENTICATED if the check fails
    """

    def decorator(
        func: Callable[..., ServiceResult[T]],
    ) -> Callable[..., ServiceResult[T]]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> ServiceResult[T]:
            caller = ChatAuthorizationService.resolve_caller(_identity_from(args, kwargs))
            if caller is None:
                return _reject(func, "UNAUTHENTICATED")

            kwargs["_caller"] = caller
            return func(*args, **kwargs)

        return wrapper

    return decorator


def require_conversation_member(
    conversation_id_param: str = "conversation_id",
) -> Callable:
    """
    Decorator that requires the caller to be a member of a conversation.

    Injects ``_caller`` and ``_conversation`` kwargs.

    Args:
        conversation_id_param: Name of the kwarg containing the conversation id

    Returns:
        ServiceResult.failure with UNAUTHENTICATED, CONVERSATION_NOT_FOUND
        or NOT_MEMBER if a check fails
    """

    def decorator(
        func: Callable[..., ServiceResult[T]],
    ) -> Callable[..., ServiceResult[T]]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> ServiceResult[T]:
            caller = ChatAuthorizationService.resolve_caller(_identity_from(args, kwargs))
            if caller is None:
                return _reject(func, "UNAUTHENTICATED")

            conversation, error_code = ChatAuthorizationService.get_conversation_for_member(
                caller, kwargs.get(conversation_id_param)
            )
            if error_code:
                return _reject(func, error_code)

            kwargs["_caller"] = caller
            kwargs["_conversation"] = conversation
            return func(*args, **kwargs)

        return wrapper

    return decorator


def require_message_member(message_id_param: str = "message_id") -> Callable:
    """
    Decorator that requires the caller to be a member of a message's conversation.

    Injects ``_caller`` and ``_message`` kwargs.

    Returns:
        ServiceResult.failure with UNAUTHENTICATED, MESSAGE_NOT_FOUND
        or NOT_MEMBER if a check fails
    """

    def decorator(
        func: Callable[..., ServiceResult[T]],
    ) -> Callable[..., ServiceResult[T]]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> ServiceResult[T]:
            caller = ChatAuthorizationService.resolve_caller(_identity_from(args, kwargs))
            if caller is None:
                return _reject(func, "UNAUTHENTICATED")

            message, error_code = ChatAuthorizationService.get_message_for_member(
                caller, kwargs.get(message_id_param)
            )
            if error_code:
                return _reject(func, error_code)

            kwargs["_caller"] = caller
            kwargs["_message"] = message
            return func(*args, **kwargs)

        return wrapper

    return decorator


def member_query(
    empty: Callable[[], T],
    conversation_id_param: str | None = None,
    message_id_param: str | None = None,
) -> Callable:
    """
    Decorator for read paths that fail soft.

    Resolves the caller and, when a conversation or message parameter is
    named, checks membership. Any failed check returns ``empty()`` instead of
    an error. Injects ``_caller`` plus ``_conversation`` or ``_message``.

    Args:
        empty: Factory for the soft-fail result (list, dict, lambda: None)
        conversation_id_param: Kwarg holding a conversation id to check
        message_id_param: Kwarg holding a message id to check
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            caller = ChatAuthorizationService.resolve_caller(_identity_from(args, kwargs))
            if caller is None:
                return empty()

            if conversation_id_param is not None:
                conversation, error_code = ChatAuthorizationService.get_conversation_for_member(
                    caller, kwargs.get(conversation_id_param)
                )
                if error_code:
                    return empty()
                kwargs["_conversation"] = conversation

            if message_id_param is not None:
                message, error_code = ChatAuthorizationService.get_message_for_member(
                    caller, kwargs.get(message_id_param)
                )
                if error_code:
                    return empty()
                kwargs["_message"] = message

            kwargs["_caller"] = caller
            return func(*args, **kwargs)

        return wrapper

    return decorator
