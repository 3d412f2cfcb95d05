"""
Transaction ledger: one immutable record per gateway exchange.
Stores masked request/response payloads, status code and error for audit.
Storage failures propagate to the caller.
"""

import logging

from fiscal.models import TransactionRecord
from fiscal.utils import mask_sensitive_fields

logger = logging.getLogger("fiscal")


def record_transaction(
    document,
    type: str,
    request_payload: dict | None,
    response_payload: dict | None,
    success: bool,
    error_message: str | None = None,
    status_code: int | None = None,
) -> TransactionRecord:
    """
    Append a ledger record for a gateway exchange.

    Args:
        document: FiscalDocument the exchange belongs to.
        type: TransactionRecord.Type.EMISSION or CANCELLATION.
        request_payload: Body sent to the gateway.
        response_payload: Parsed gateway body, or None when nothing came back.
        success: Whether the gateway accepted the request.
        error_message: Failure cause, if any.
        status_code: HTTP status, if a response was received.

    Returns:
        TransactionRecord: The created record.
    """
    request_json = request_payload if isinstance(request_payload, dict) else {"payload": request_payload}
    response_json = response_payload
    if response_json is not None and not isinstance(response_json, dict):
        response_json = {"payload": response_json}

    record = TransactionRecord.objects.create(
        document=document,
        type=type,
        request_payload=mask_sensitive_fields(request_json),
        response_payload=mask_sensitive_fields(response_json),
        success=success,
        error_message=error_message or None,
        status_code=status_code,
        retry_count=document.retry_count,
    )
    logger.info(
        "Ledger %s recorded for document %s: %s",
        type,
        document.pk,
        "success" if success else (error_message or "failed"),
        extra={"document_id": document.pk, "retry_count": document.retry_count},
    )
    return record


def record_gateway_response(document, type: str, response) -> TransactionRecord:
    """Append a ledger record from a GatewayResponse."""
    return record_transaction(
        document,
        type,
        request_payload=response.request_payload,
        response_payload=response.response_payload,
        success=response.success,
        error_message=None if response.success else response.message,
        status_code=response.status_code,
    )


def transactions_for(document):
    """Ledger records for a document, oldest first."""
    return TransactionRecord.objects.filter(document=document).order_by("created_at", "id")
