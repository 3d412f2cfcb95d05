"""Celery app for the fiscal submission pipeline."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "fiscal_project.settings")

app = Celery("fiscal_project")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
