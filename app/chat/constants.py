"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Conversations (group capacity, list pagination)
- Messages (content limits, page sizes, client merge policy)
- Reactions (emoji restrictions)
- Typing indicators and presence (TTL windows)

Import example:
    from chat.constants import GROUP_CONFIG, MESSAGE_CONFIG, TYPING_CONFIG
"""

from typing import Final


# =============================================================================
# Conversation Configuration
# =============================================================================


class GROUP_CONFIG:
    """Configuration for group conversations."""

    # Admin included
    MAX_MEMBERS: Final[int] = 20
    MAX_NAME_LENGTH: Final[int] = 100


class CONVERSATION_CONFIG:
    """Configuration for the conversation list."""

    DEFAULT_PAGE_SIZE: Final[int] = 15
    MAX_PAGE_SIZE: Final[int] = 100


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters

    DEFAULT_PAGE_SIZE: Final[int] = 15
    MAX_PAGE_SIZE: Final[int] = 100

    # Client merge policy: auto-scroll only when this close to the bottom
    AUTOSCROLL_THRESHOLD_PX: Final[int] = 200


# =============================================================================
# Reaction Configuration
# =============================================================================


class REACTION_CONFIG:
    """Configuration for message reactions."""

    # Max characters for a single emoji (handles compound emojis)
    MAX_EMOJI_LENGTH: Final[int] = 8


# =============================================================================
# Typing Configuration
# =============================================================================


class TYPING_CONFIG:
    """Configuration for typing indicators."""

    # A typing row is valid while now < expires_at
    WINDOW_SECONDS: Final[int] = 4


# =============================================================================
# Presence Configuration
# =============================================================================


class PRESENCE_CONFIG:
    """Configuration for presence tracking."""

    # Online rows without a heartbeat for this long are swept to offline
    STALE_AFTER_SECONDS: Final[int] = 60

    # How often clients should send heartbeat
    HEARTBEAT_INTERVAL_SECONDS: Final[int] = 30
