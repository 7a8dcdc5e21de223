"""
Settings for the pytest suite.

Everything external is faked: SQLite in memory, a per-process cache,
Celery tasks executed inline and placeholder API keys that no test
ever sends to a real service.
"""

from .base import *

DEBUG = False
ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Breaker state, provider responses and throttle history all live here
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "smart-enrich-tests",
    }
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

LOGGING["loggers"]["django"]["level"] = "WARNING"
LOGGING["loggers"]["enrichment"]["level"] = "WARNING"

AUTH_PASSWORD_VALIDATORS = []
PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

SENTRY_DSN = ""

# Fake credentials
INTERNAL_API_KEY = "test-internal-key"
SHOPIFY_API_SECRET = "test-webhook-secret"
GEMINI_API_KEY = "test-gemini-key"
GOOGLE_SEARCH_API_KEY = "test-google-key"
GOOGLE_SEARCH_CX = "test-cx"
SERPAPI_KEY = "test-serpapi-key"
GO_UPC_API_KEY = ""
SEARCH_PROVIDERS = ["google_cse", "serpapi"]

ENRICHMENT_DEFAULT_SHOP = ""
ENRICHMENT_FORCE_AUTO_APPLY_AUTOMATED = True
