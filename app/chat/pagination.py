"""
Pagination helpers for chat.

Two strategies coexist:

- Offset cursors (plain integers) for the conversation list and the user
  directory, where lists are moderate in size.
- Watermark cursors for messages. A cursor encodes the (created_at, id) of
  the oldest message already delivered, so the next page is "strictly older
  than the watermark" and stays stable while new messages arrive at the tail.

This module also holds the client merge policy used by Python clients and
tests: older pages are de-duplicated against the live tail by message id
before being spliced above it, and auto-scroll only fires near the bottom.
"""

from __future__ import annotations

import base64
import json
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from core.exceptions import ValidationError
from chat.constants import MESSAGE_CONFIG

if TYPE_CHECKING:
    from collections.abc import Iterable

    from chat.models import Message


def encode_message_cursor(message: Message) -> str:
    """Encode the (created_at, id) watermark of a message as an opaque string."""
    payload = {"ts": message.created_at.isoformat(), "id": message.pk}
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()


def decode_message_cursor(cursor: str) -> tuple[datetime, int]:
    """
    Decode a message cursor back to its watermark.

    Raises:
        ValidationError: INVALID_CURSOR if the cursor is not one we issued
    """
    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())
        created_at = datetime.fromisoformat(data["ts"])
        message_id = int(data["id"])
    except (ValueError, KeyError, TypeError) as e:
        raise ValidationError("Malformed cursor", error_code="INVALID_CURSOR") from e

    if created_at.tzinfo is None:
        raise ValidationError("Malformed cursor", error_code="INVALID_CURSOR")
    return created_at, message_id


def _message_id(message: Any) -> Any:
    if isinstance(message, Mapping):
        return message["id"]
    return message.id


def merge_message_window(
    older_pages: Iterable[Any],
    live_tail: list[Any],
) -> list[Any]:
    """
    Splice paginated older messages above the live tail.

    Both inputs are in chronological order. Messages already present in the
    live tail (the windows overlap when new messages push the tail forward
    while the user scrolls) are dropped from the older part, as are repeats
    between older pages.

    Args:
        older_pages: Messages from getMessages(cursor=...) pages, oldest first
        live_tail: The current no-cursor page, oldest first

    Returns:
        One chronological list without duplicate ids
    """
    seen = {_message_id(message) for message in live_tail}
    older = []
    for message in older_pages:
        message_id = _message_id(message)
        if message_id in seen:
            continue
        seen.add(message_id)
        older.append(message)
    return older + list(live_tail)


def should_autoscroll(
    *,
    is_initial_load: bool,
    has_new_message: bool,
    distance_from_bottom: float,
    threshold: float = MESSAGE_CONFIG.AUTOSCROLL_THRESHOLD_PX,
) -> bool:
    """
    Decide whether the message view should jump to the bottom.

    Fires once on the initial load, then only when a new message arrives
    while the viewport is within ``threshold`` pixels of the bottom. Tail
    updates never interrupt a user who has scrolled up.
    """
    if is_initial_load:
        return True
    return has_new_message and distance_from_bottom <= threshold
