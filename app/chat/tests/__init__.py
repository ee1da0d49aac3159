"""
Tests for chat app.

This package contains test modules for:
- test_services.py: Conversation, message, reaction, typing, presence services
- test_authorization.py: Caller resolution and membership decorators
- test_pagination.py: Message cursors and the client merge policy
- test_events.py: Change events published after commit
- test_subscriptions.py: Live query registry
- test_consumers.py: WebSocket live query consumer
- test_tasks.py: Periodic sweeps
- test_views.py: REST API endpoint tests

Usage:
    pytest chat/tests/
    pytest chat/tests/test_consumers.py
"""
