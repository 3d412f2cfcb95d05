"""
Staging environment settings.
Use: DJANGO_SETTINGS_MODULE=fiscal_project.settings_staging

- Separate DB (staging db_staging.sqlite3)
- Gateway test environment (environment flag 1)
- Log rotation enabled
"""

import os
from pathlib import Path

from .settings import *  # noqa: F401, F403

BASE_DIR = Path(__file__).resolve().parent.parent

DEBUG = os.environ.get("DEBUG", "false").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1,staging.example.com").split(",")

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db_staging.sqlite3",
    }
}

# Staging always talks to the authority's test environment
FISCAL_ENVIRONMENT = "1"
FISCAL_GATEWAY_BASE_URL = os.environ.get("FISCAL_GATEWAY_BASE_URL", "https://sandbox.gateway.example.com")

LOGS_DIR = BASE_DIR / "logs"
LOGS_DIR.mkdir(exist_ok=True)

LOGGING["handlers"]["fiscal_file"] = {
    "level": "INFO",
    "class": "logging.handlers.RotatingFileHandler",
    "filename": LOGS_DIR / "fiscal.log",
    "maxBytes": 10 * 1024 * 1024,  # 10 MB
    "backupCount": 30,
    "formatter": "simple",
}
LOGGING["handlers"]["fiscal_json_file"] = {
    "level": "INFO",
    "class": "logging.handlers.RotatingFileHandler",
    "filename": LOGS_DIR / "fiscal_json.log",
    "maxBytes": 10 * 1024 * 1024,
    "backupCount": 30,
    "formatter": "json",
}
LOGGING["loggers"]["fiscal"]["handlers"] = ["console", "fiscal_file", "fiscal_json_file"]
