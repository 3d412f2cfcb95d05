"""
Base settings for the fiscal submission pipeline.
Use: DJANGO_SETTINGS_MODULE=fiscal_project.settings (local development and tests).

Environment-specific overrides live in settings_staging / settings_production.
"""

import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("SECRET_KEY", "dev-insecure-fiscal-pipeline-key")
DEBUG = os.environ.get("DEBUG", "true").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "fiscal",
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

ROOT_URLCONF = "fiscal_project.urls"
WSGI_APPLICATION = "fiscal_project.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("TIME_ZONE", "America/Guayaquil")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

# Tax-authority gateway
FISCAL_GATEWAY_BASE_URL = os.environ.get("FISCAL_GATEWAY_BASE_URL", "https://sandbox.gateway.example.com")
FISCAL_GATEWAY_TOKEN = os.environ.get("FISCAL_GATEWAY_TOKEN", "")
FISCAL_GATEWAY_TIMEOUT = int(os.environ.get("FISCAL_GATEWAY_TIMEOUT", "30"))

# Issuer identity used in access keys and payloads
FISCAL_ISSUER_TAX_ID = os.environ.get("FISCAL_ISSUER_TAX_ID", "1790012345001")
FISCAL_ISSUER_NAME = os.environ.get("FISCAL_ISSUER_NAME", "Marketplace S.A.")
FISCAL_ISSUER_ADDRESS = os.environ.get("FISCAL_ISSUER_ADDRESS", "")
FISCAL_ENVIRONMENT = os.environ.get("FISCAL_ENVIRONMENT", "1")  # 1 = test, 2 = production
FISCAL_SERIES = os.environ.get("FISCAL_SERIES", "001001")
FISCAL_DOCUMENT_TYPE = "01"
FISCAL_EMISSION_TYPE = "1"
FISCAL_CURRENCY = os.environ.get("FISCAL_CURRENCY", "DOLAR")

# Retry orchestration
FISCAL_ATTEMPTS_PER_ROUND = 3
FISCAL_MAX_ATTEMPTS = 12
FISCAL_INTRA_ROUND_DELAY_SECONDS = 5
FISCAL_ROUND_DELAYS_MINUTES = {1: 0, 2: 5, 3: 15, 4: 30}
FISCAL_RECOVERY_DELAY_SECONDS = 2 * 60 * 60
# Never shorter than one worst-case attempt (status query with retries + emission)
FISCAL_LEASE_SECONDS = 600
FISCAL_SWEEP_COOLDOWN_MINUTES = 30
FISCAL_SWEEP_BATCH_SIZE = 10
FISCAL_RECONCILE_BEFORE_RETRY = os.environ.get("FISCAL_RECONCILE_BEFORE_RETRY", "true").lower() in ("1", "true", "yes")

# Celery
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")
CELERY_TASK_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_REJECT_ON_WORKER_LOST = True
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_TASK_ROUTES = {
    "fiscal.retry_document_task": {"queue": "fiscal-retries"},
    "fiscal.recover_retryable_documents_task": {"queue": "fiscal-retries"},
    "fiscal.sweep_due_documents_task": {"queue": "fiscal-retries"},
}
CELERY_BEAT_SCHEDULE = {
    "fiscal-sweep-due-documents": {
        "task": "fiscal.sweep_due_documents_task",
        "schedule": timedelta(minutes=30),
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        },
        "json": {
            "()": "fiscal.logging_formatter.JSONFormatter",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "loggers": {
        "fiscal": {
            "handlers": ["console"],
            "level": os.environ.get("FISCAL_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
