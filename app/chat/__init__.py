"""
Chat app for real-time messaging.

This app handles:
- Direct conversations (one per user pair, plus a self-chat)
- Admin-governed group conversations
- Message log with watermark pagination and logical deletion
- Reactions, unread counters, typing indicators and presence
- Live query subscriptions over WebSocket

Related apps:
    - authentication: User model, identity token verification

WebSocket Support:
    Uses Django Channels for live query subscriptions.
    See consumers.py for the subscription consumer.
    See routing.py for WebSocket URL patterns.

Usage:
    from chat.services import ConversationService, MessageService

    result = ConversationService.get_or_create_conversation(
        identity, current_user_id=me.id, other_user_id=other.id
    )
    MessageService.send_message(
        identity,
        conversation_id=result.data,
        sender_id=me.id,
        content="Hello!",
    )
"""
