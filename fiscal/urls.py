"""URL configuration for fiscal app."""

from django.urls import path

from . import views_api
from . import views_health

urlpatterns = [
    path("health/gateway/", views_health.gateway_health, name="gateway_health"),
    path("api/documents/statistics/", views_api.api_document_statistics, name="api_document_statistics"),
    path("api/documents/definitively-failed/", views_api.api_definitively_failed, name="api_definitively_failed"),
    path("api/documents/recover/", views_api.api_documents_recover, name="api_documents_recover"),
    path(
        "api/documents/report/<int:year>/<int:month>/",
        views_api.api_monthly_report,
        name="api_monthly_report",
    ),
    path(
        "api/documents/by-key/<str:access_key>/",
        views_api.api_document_by_access_key,
        name="api_document_by_access_key",
    ),
    path("api/documents/<int:document_id>/", views_api.api_document_detail, name="api_document_detail"),
    path("api/documents/<int:document_id>/retry/", views_api.api_document_retry, name="api_document_retry"),
    path("api/documents/<int:document_id>/cancel/", views_api.api_document_cancel, name="api_document_cancel"),
    path(
        "api/documents/<int:document_id>/remediate/",
        views_api.api_document_remediate,
        name="api_document_remediate",
    ),
]
