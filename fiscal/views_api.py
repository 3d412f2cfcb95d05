"""JSON API endpoints for operators. Staff only."""

import json

from django.contrib.admin.views.decorators import staff_member_required
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from fiscal.exceptions import (
    DocumentLeaseUnavailable,
    DocumentNotCancellable,
    DocumentNotFound,
    InvalidDocumentPayload,
)
from fiscal.models import FiscalDocument
from fiscal.services.document_queries import (
    find_by_access_key,
    monthly_report,
    retry_info,
    serialize_document,
    statistics,
)
from fiscal.services.document_service import cancel_document, remediate_document
from fiscal.services.retry_orchestrator import RetryOrchestrator


def _json_body(request):
    try:
        body = json.loads(request.body or "{}")
    except json.JSONDecodeError:
        return None
    return body if isinstance(body, dict) else None


@staff_member_required
@require_http_methods(["GET"])
def api_document_detail(request, document_id):
    """GET /api/documents/<id>/ - Document with ledger and retry information."""
    document = FiscalDocument.objects.filter(pk=document_id).first()
    if not document:
        return JsonResponse({"error": "Document not found"}, status=404)
    data = serialize_document(document)
    data["retry_info"] = retry_info(document)
    data["transactions"] = [
        {
            "type": t.type,
            "success": t.success,
            "error_message": t.error_message,
            "status_code": t.status_code,
            "retry_count": t.retry_count,
            "created_at": t.created_at.isoformat(),
        }
        for t in document.transactions.all()
    ]
    return JsonResponse(data)


@staff_member_required
@require_http_methods(["GET"])
def api_document_by_access_key(request, access_key):
    """GET /api/documents/by-key/<access_key>/"""
    document = find_by_access_key(access_key)
    if not document:
        return JsonResponse({"error": "Document not found"}, status=404)
    return JsonResponse(serialize_document(document))


@csrf_exempt
@staff_member_required
@require_http_methods(["POST"])
def api_document_retry(request, document_id):
    """POST /api/documents/<id>/retry/ - Immediate manual retry."""
    document = FiscalDocument.objects.filter(pk=document_id).first()
    if not document:
        return JsonResponse({"error": "Document not found"}, status=404)
    if not document.can_retry():
        return JsonResponse(
            {"success": False, "error": f"Document is {document.status} with {document.retry_count} attempts; not retryable"},
            status=409,
        )
    dispatched = RetryOrchestrator().retry_now(document.pk)
    return JsonResponse({"success": dispatched, "retry_info": retry_info(document)})


@csrf_exempt
@staff_member_required
@require_http_methods(["POST"])
def api_document_cancel(request, document_id):
    """POST /api/documents/<id>/cancel/ - Body: {"reason": str}."""
    body = _json_body(request)
    if body is None:
        return JsonResponse({"success": False, "error": "Invalid JSON"}, status=400)
    try:
        document, err = cancel_document(document_id, body.get("reason", ""))
    except DocumentNotFound as e:
        return JsonResponse({"success": False, "error": str(e)}, status=404)
    except DocumentNotCancellable as e:
        return JsonResponse({"success": False, "error": str(e)}, status=409)
    except DocumentLeaseUnavailable as e:
        return JsonResponse({"success": False, "error": str(e)}, status=423)
    except InvalidDocumentPayload as e:
        return JsonResponse({"success": False, "error": str(e)}, status=400)
    if err:
        return JsonResponse({"success": False, "error": err, "document": serialize_document(document)}, status=502)
    return JsonResponse({"success": True, "document": serialize_document(document)})


@csrf_exempt
@staff_member_required
@require_http_methods(["POST"])
def api_document_remediate(request, document_id):
    """POST /api/documents/<id>/remediate/ - Body: {"payload": {...}} (optional)."""
    body = _json_body(request)
    if body is None:
        return JsonResponse({"success": False, "error": "Invalid JSON"}, status=400)
    try:
        replacement = remediate_document(document_id, body.get("payload"))
    except DocumentNotFound as e:
        return JsonResponse({"success": False, "error": str(e)}, status=404)
    except InvalidDocumentPayload as e:
        return JsonResponse({"success": False, "error": str(e)}, status=400)
    return JsonResponse({"success": True, "document": serialize_document(replacement)}, status=201)


@staff_member_required
@require_http_methods(["GET"])
def api_document_statistics(request):
    """GET /api/documents/statistics/"""
    return JsonResponse(statistics())


@staff_member_required
@require_http_methods(["GET"])
def api_definitively_failed(request):
    """GET /api/documents/definitively-failed/ - Documents awaiting operator action."""
    documents = FiscalDocument.objects.definitively_failed().order_by("-updated_at")[:200]
    data = []
    for document in documents:
        item = serialize_document(document)
        item["last_error"] = document.last_error
        data.append(item)
    return JsonResponse({"documents": data})


@csrf_exempt
@staff_member_required
@require_http_methods(["POST"])
def api_documents_recover(request):
    """POST /api/documents/recover/ - Bulk recovery of retryable documents."""
    dispatched = RetryOrchestrator().recover_all()
    return JsonResponse({"success": True, "dispatched": dispatched})


@staff_member_required
@require_http_methods(["GET"])
def api_monthly_report(request, year, month):
    """GET /api/documents/report/<year>/<month>/"""
    if not 1 <= month <= 12:
        return JsonResponse({"error": "Invalid month"}, status=400)
    return JsonResponse(monthly_report(year, month))
