"""WSGI config for fiscal_project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "fiscal_project.settings")

application = get_wsgi_application()
