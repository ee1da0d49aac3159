"""
Tests for chat periodic tasks.

Tasks are called directly (eager); the beat schedule only decides when.
"""

from datetime import timedelta

from freezegun import freeze_time

from chat.models import PresenceRecord, TypingSignal
from chat.services import PresenceService, TypingService
from chat.tasks import expire_stale_presence, prune_expired_typing_signals


class TestPruneExpiredTypingSignals:
    def test_prunes_only_expired(self, direct, alice, alice_identity, bob, bob_identity):
        with freeze_time("2026-01-01 12:00:00") as frozen:
            TypingService.set_typing(bob_identity, conversation_id=direct.pk, user_id=bob.pk)
            frozen.tick(timedelta(seconds=3))
            TypingService.set_typing(alice_identity, conversation_id=direct.pk, user_id=alice.pk)
            frozen.tick(timedelta(seconds=2))

            deleted = prune_expired_typing_signals()

        assert deleted == 1
        assert list(TypingSignal.objects.values_list("user_id", flat=True)) == [alice.pk]


class TestExpireStalePresence:
    def test_marks_silent_users_offline(self, alice, alice_identity):
        with freeze_time("2026-01-01 12:00:00") as frozen:
            PresenceService.set_online(alice_identity)
            frozen.tick(timedelta(seconds=61))

            expired = expire_stale_presence()

        assert expired == 1
        assert PresenceRecord.objects.get(user=alice).online is False

    def test_nothing_to_expire(self, db):
        assert expire_stale_presence() == 0
