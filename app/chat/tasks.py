"""
Celery tasks for chat app.

This module defines periodic sweeps for ephemeral state:
- Typing signal pruning (rows past expires_at)
- Stale presence expiry (clients that vanished without disconnecting)

Both run from CELERY_BEAT_SCHEDULE in config/settings.py. The write paths
prune lazily as well, so a stopped beat only delays cleanup.

Related files:
    - services.py: TypingService.prune_expired, PresenceService.expire_stale
    - models.py: TypingSignal, PresenceRecord

Usage:
    from chat.tasks import prune_expired_typing_signals

    prune_expired_typing_signals.delay()
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def prune_expired_typing_signals(self) -> int:
    """
    Delete typing signals whose window has passed.

    Returns:
        Number of rows deleted
    """
    from chat.services import TypingService

    deleted = TypingService.prune_expired()
    if deleted:
        logger.info(f"Pruned {deleted} expired typing signals")
    return deleted


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def expire_stale_presence(self) -> int:
    """
    Mark users offline whose last heartbeat is older than
    PRESENCE_CONFIG.STALE_AFTER_SECONDS.

    Returns:
        Number of users marked offline
    """
    from chat.services import PresenceService

    return PresenceService.expire_stale()
