"""
Django base settings for the SmartEnrich service.

This module contains settings common to all environments.
For more information on this file, see
https://docs.djangoproject.com/en/4.2/topics/settings/
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "SECRET_KEY",
    "django-insecure-smart-enrich-dev-key-change-in-production"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DEBUG", "True") == "True"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")


# Application definition

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party apps
    "rest_framework",
    "drf_spectacular",
    # Local apps
    "enrichment",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"


# Database
# Configured in environment-specific settings (development.py, production.py, test.py)

DATABASES = {
    # Override in environment-specific settings
}


# Password validation
# https://docs.djangoproject.com/en/4.2/ref/settings/#auth-password-validators

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]


# Internationalization

LANGUAGE_CODE = "es-cr"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True


# Static files (CSS, JavaScript, Images)

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Cache Configuration
# Shared by the provider response cache, the circuit breaker and the
# rate limiters. Configured in environment-specific settings.

CACHES = {
    # Override in environment-specific settings
}


# Celery Configuration
# https://docs.celeryproject.org/en/stable/django/first-steps-with-django.html

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 60 * 60  # One run may walk 200 products

# Jobs are acknowledged after they finish; a stalled job is redelivered
# once the visibility timeout expires.
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_REJECT_ON_WORKER_LOST = True
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_BROKER_TRANSPORT_OPTIONS = {
    "visibility_timeout": int(os.getenv("JOB_VISIBILITY_TIMEOUT", "600")),
    "queue_order_strategy": "priority",
}

WORKER_CONCURRENCY = int(os.getenv("WORKER_CONCURRENCY", "3"))
CELERY_WORKER_CONCURRENCY = WORKER_CONCURRENCY


# Django REST Framework Configuration
# https://www.django-rest-framework.org/

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [
        "enrichment.api.permissions.HasInternalAPIKey",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "UNAUTHENTICATED_USER": None,
}


# DRF Spectacular (OpenAPI/Swagger) Configuration
# https://drf-spectacular.readthedocs.io/

SPECTACULAR_SETTINGS = {
    "TITLE": "SmartEnrich API",
    "DESCRIPTION": "Product catalog enrichment service for Shopify stores",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}


# Logging Configuration
# https://docs.djangoproject.com/en/4.2/topics/logging/

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
        "enrichment": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
    },
}


# External API Configuration

# Shopify Admin API
SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2025-01")
SHOPIFY_API_SECRET = os.getenv("SHOPIFY_API_SECRET", "")
SHOPIFY_TIMEOUT = int(os.getenv("SHOPIFY_TIMEOUT", "30"))

# Gemini generative model
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_TIMEOUT = int(os.getenv("GEMINI_TIMEOUT", "30"))

# Text and image search providers, tried in order
GOOGLE_SEARCH_API_KEY = os.getenv("GOOGLE_SEARCH_API_KEY", "")
GOOGLE_SEARCH_CX = os.getenv("GOOGLE_SEARCH_CX", "")
SERPAPI_KEY = os.getenv("SERPAPI_KEY", "")
SEARCH_PROVIDERS = os.getenv("SEARCH_PROVIDERS", "google_cse,serpapi").split(",")
SEARCH_TIMEOUT = int(os.getenv("SEARCH_TIMEOUT", "10"))

# Barcode lookup
GO_UPC_API_KEY = os.getenv("GO_UPC_API_KEY", "")

# Provider cache and circuit breaker
PROVIDER_COOLDOWN_SECONDS = int(os.getenv("PROVIDER_COOLDOWN_SECONDS", "3600"))
SEARCH_CACHE_TTL = int(os.getenv("SEARCH_CACHE_TTL", str(7 * 24 * 3600)))
IMAGE_CACHE_TTL = int(os.getenv("IMAGE_CACHE_TTL", str(7 * 24 * 3600)))
BARCODE_CACHE_TTL = int(os.getenv("BARCODE_CACHE_TTL", str(30 * 24 * 3600)))


# Enrichment Configuration

# Shared budget for model calls across all workers
GENERATION_RATE_LIMIT = int(os.getenv("GENERATION_RATE_LIMIT", "10"))
GENERATION_RATE_PERIOD = int(os.getenv("GENERATION_RATE_PERIOD", "60"))

# Manual batch triggers per shop per rolling window
TRIGGER_RATE_LIMIT = int(os.getenv("TRIGGER_RATE_LIMIT", "3"))
TRIGGER_RATE_WINDOW = int(os.getenv("TRIGGER_RATE_WINDOW", "600"))

# Products scoring at or above this are left alone
ENRICHMENT_THRESHOLD = int(os.getenv("ENRICHMENT_THRESHOLD", "80"))

# Hard stop on catalog pages walked while collecting candidates
ENRICHMENT_MAX_CANDIDATE_PAGES = int(os.getenv("ENRICHMENT_MAX_CANDIDATE_PAGES", "20"))

# Scheduled and webhook jobs always auto-apply
ENRICHMENT_FORCE_AUTO_APPLY_AUTOMATED = (
    os.getenv("ENRICHMENT_FORCE_AUTO_APPLY_AUTOMATED", "True") == "True"
)

# Shop registered by setup_schedules when no StoreConfig exists
ENRICHMENT_DEFAULT_SHOP = os.getenv("ENRICHMENT_DEFAULT_SHOP", "")
ENRICHMENT_DEFAULT_CRON = os.getenv("ENRICHMENT_DEFAULT_CRON", "0 2 * * *")

# Shared key for the internal trigger API
INTERNAL_API_KEY = os.getenv("INTERNAL_API_KEY", "")


# Sentry Configuration
# https://docs.sentry.io/platforms/python/guides/django/

SENTRY_DSN = os.getenv("SENTRY_DSN", "")
SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

# Initialize Sentry
import sentry_sdk

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        # Access tokens travel in headers; keep them out of events
        send_default_pii=False,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        environment=SENTRY_ENVIRONMENT,
    )
