"""
Local development settings for the SmartEnrich service.

SQLite plus Django's database cache, so only the Celery broker needs
Redis. Run `python manage.py createcachetable` once before starting.
"""

import os
from .base import *

DEBUG = True
ALLOWED_HOSTS = ["localhost", "127.0.0.1"]
INTERNAL_IPS = ["127.0.0.1"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.db.DatabaseCache",
        "LOCATION": "cache_table",
    }
}

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

LOGGING["loggers"]["django"]["level"] = "DEBUG"
LOGGING["loggers"]["enrichment"]["level"] = "DEBUG"

AUTH_PASSWORD_VALIDATORS = []

# Fewer listing pages per run while iterating on prompts
ENRICHMENT_MAX_CANDIDATE_PAGES = int(os.getenv("ENRICHMENT_MAX_CANDIDATE_PAGES", "5"))
