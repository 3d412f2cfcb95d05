"""
Production environment settings.
Use: DJANGO_SETTINGS_MODULE=fiscal_project.settings_production

- Production DB (PostgreSQL via DATABASE_URL recommended; SQLite supported)
- Gateway production environment (environment flag 2)
- Log rotation and retention
- DEBUG=False, SECRET_KEY and gateway credentials from env
"""

import os
from pathlib import Path

import dj_database_url

from .settings import *  # noqa: F401, F403

BASE_DIR = Path(__file__).resolve().parent.parent

DEBUG = False
SECRET_KEY = os.environ.get("SECRET_KEY")
if not SECRET_KEY:
    raise ValueError("SECRET_KEY environment variable must be set in production")
ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "").split(",")
if not ALLOWED_HOSTS or ALLOWED_HOSTS == [""]:
    raise ValueError("ALLOWED_HOSTS environment variable must be set in production")

if os.environ.get("DATABASE_URL"):
    DATABASES = {"default": dj_database_url.config(conn_max_age=600)}
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("DB_PATH", str(BASE_DIR / "db_production.sqlite3")),
        }
    }

FISCAL_ENVIRONMENT = "2"
FISCAL_GATEWAY_BASE_URL = os.environ.get("FISCAL_GATEWAY_BASE_URL")
if not FISCAL_GATEWAY_BASE_URL:
    raise ValueError("FISCAL_GATEWAY_BASE_URL environment variable must be set in production")
FISCAL_GATEWAY_TOKEN = os.environ.get("FISCAL_GATEWAY_TOKEN")
if not FISCAL_GATEWAY_TOKEN:
    raise ValueError("FISCAL_GATEWAY_TOKEN environment variable must be set in production")

LOGS_DIR = Path(os.environ.get("LOGS_DIR", str(BASE_DIR / "logs")))
LOGS_DIR.mkdir(parents=True, exist_ok=True)

LOGGING["handlers"]["fiscal_file"] = {
    "level": "INFO",
    "class": "logging.handlers.RotatingFileHandler",
    "filename": LOGS_DIR / "fiscal.log",
    "maxBytes": 10 * 1024 * 1024,  # 10 MB
    "backupCount": 30,  # 30 days retention
    "formatter": "simple",
}
LOGGING["handlers"]["fiscal_error_json_file"] = {
    "level": "ERROR",
    "class": "logging.handlers.RotatingFileHandler",
    "filename": LOGS_DIR / "fiscal_error_json.log",
    "maxBytes": 5 * 1024 * 1024,
    "backupCount": 90,  # 90 days for errors
    "formatter": "json",
}
LOGGING["loggers"]["fiscal"]["handlers"] = ["console", "fiscal_file", "fiscal_error_json_file"]
