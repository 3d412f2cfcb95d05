"""Health check endpoints. No auth required for monitoring."""

from django.http import JsonResponse


def gateway_health(request):
    """
    GET /health/gateway/
    Checks: gateway configured, gateway reachable, definitively failed backlog.
    Returns: OK, WARNING, CRITICAL
    """
    from django.conf import settings

    from fiscal.models import FiscalDocument
    from fiscal.services.gateway_client import FiscalGatewayClient

    status = "OK"
    checks = {}

    if not getattr(settings, "FISCAL_GATEWAY_BASE_URL", "") or not getattr(settings, "FISCAL_GATEWAY_TOKEN", ""):
        status = "CRITICAL"
        checks["configuration"] = "Gateway URL or token missing"
    else:
        checks["configuration"] = "Present"

    failed = FiscalDocument.objects.definitively_failed().count()
    retryable = FiscalDocument.objects.retryable().count()
    checks["retryable_documents"] = retryable
    checks["definitively_failed_documents"] = failed
    if failed:
        status = "WARNING" if status == "OK" else status

    if status != "CRITICAL":
        probe = FiscalDocument.objects.exclude(access_key__isnull=True).order_by("-created_at").first()
        if probe:
            response = FiscalGatewayClient().query_status(probe.access_key)
            if response.status_code is None:
                status = "CRITICAL"
                checks["gateway"] = f"Unreachable: {response.message[:100]}"
            else:
                checks["gateway"] = "Reachable"
        else:
            checks["gateway"] = "Not probed (no submitted documents)"

    return JsonResponse({
        "status": status,
        "checks": checks,
    })
