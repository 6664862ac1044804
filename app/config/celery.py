"""
Celery configuration for the Django application.

Celery runs everything that must not block the webhook endpoint:
- Webhook event processing (payments.tasks.process_webhook_event)
- Post-commit side effects from the outbox (badges, shipping payouts)
- Periodic sweeps (failed webhooks, stuck events, payout retries, balance checks)

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps; the periodic
schedule lives in settings.CELERY_BEAT_SCHEDULE.

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Looks for a tasks.py module in each installed app
app.autodiscover_tasks()
