"""
Celery application for the SmartEnrich service.

Enrichment jobs run on their own `enrichment` queue, ordered by message
priority (single-product jobs ahead of batch runs). The beat scheduler
only runs `check_due_schedules` once a minute; per-shop cron schedules
live in the database as EnrichmentSchedule rows.
"""

import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("smart_enrich")

# All CELERY_* keys in Django settings configure the app
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

app.conf.task_queues = {
    "enrichment": {
        "exchange": "enrichment",
        "routing_key": "enrichment",
    },
    "default": {
        "exchange": "default",
        "routing_key": "default",
    },
}
app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"
app.conf.task_queue_max_priority = 10
app.conf.task_default_priority = 5

app.conf.task_routes = {
    "enrichment.tasks.run_enrichment_job": {"queue": "enrichment"},
    "enrichment.tasks.check_due_schedules": {"queue": "default"},
}

app.conf.beat_schedule = {
    "dispatch-due-enrichment-schedules": {
        "task": "enrichment.tasks.check_due_schedules",
        "schedule": crontab(minute="*"),
    },
}
