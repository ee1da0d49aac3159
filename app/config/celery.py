"""
Celery configuration for the messaging backend.

Celery runs the periodic sweeps that clean up ephemeral chat state:
- Expired typing signals (also pruned lazily on the typing write path)
- Presence rows whose heartbeat stopped without a clean disconnect

The beat schedule lives in settings.CELERY_BEAT_SCHEDULE. Tasks are
auto-discovered from the tasks.py module of every installed app.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
