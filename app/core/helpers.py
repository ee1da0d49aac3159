"""
Helper functions for common infrastructure operations.

These utilities are domain-agnostic; they know nothing about users,
conversations or messages.

Usage:
    from core.helpers import clamp_limit

    limit = clamp_limit(request_limit, default=15, maximum=100)
"""

from __future__ import annotations


def clamp_limit(limit: int | None, default: int, maximum: int) -> int:
    """
    Apply the default page size and bound it to [1, maximum].

    Zero and None mean "use the default"; negative values clamp to 1.
    """
    if not limit:
        return default
    return max(1, min(int(limit), maximum))
