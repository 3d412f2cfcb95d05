"""
Fiscal document service: draft creation, initial submission, cancellation and
operator remediation of definitively failed documents.
"""

import logging

from django.conf import settings
from django.db import transaction

from fiscal.exceptions import DocumentNotCancellable, DocumentNotFound, InvalidDocumentPayload
from fiscal.models import FiscalDocument, TransactionRecord
from fiscal.services.audit import log_audit
from fiscal.services.document_lease import document_lease
from fiscal.services.document_sequence import next_sequential_number
from fiscal.services.document_state import transition
from fiscal.services.gateway_client import FiscalGatewayClient
from fiscal.services.gateway_payload import payload_total, validate_business_payload
from fiscal.services.retry_orchestrator import RetryOrchestrator
from fiscal.services.submission import assign_access_key, attempt_submission
from fiscal.services.transaction_ledger import record_gateway_response

logger = logging.getLogger("fiscal")

Status = FiscalDocument.Status


def _get_document(document_id: int) -> FiscalDocument:
    try:
        return FiscalDocument.objects.get(pk=document_id)
    except FiscalDocument.DoesNotExist:
        raise DocumentNotFound(f"Fiscal document {document_id} not found")


def create_draft_document(
    payload: dict,
    *,
    order_reference: str = "",
    issue_date=None,
    supersedes: FiscalDocument | None = None,
) -> FiscalDocument:
    """
    Validate the business payload, reserve the next sequential number and
    store a DRAFT document. Raises InvalidDocumentPayload.
    """
    validate_business_payload(payload)
    issuer_tax_id = settings.FISCAL_ISSUER_TAX_ID
    series = settings.FISCAL_SERIES
    with transaction.atomic():
        sequential = next_sequential_number(issuer_tax_id, series)
        fields = {
            "issuer_tax_id": issuer_tax_id,
            "series": series,
            "document_type": getattr(settings, "FISCAL_DOCUMENT_TYPE", "01"),
            "environment": getattr(settings, "FISCAL_ENVIRONMENT", "1"),
            "emission_type": getattr(settings, "FISCAL_EMISSION_TYPE", "1"),
            "sequential_number": sequential,
            "payload": payload,
            "total_amount": payload_total(payload),
            "order_reference": order_reference or "",
            "supersedes": supersedes,
        }
        if issue_date is not None:
            fields["issue_date"] = issue_date
        document = FiscalDocument.objects.create(**fields)
        log_audit(document, "document_created", {
            "sequential_number": sequential,
            "order_reference": document.order_reference,
            "supersedes": supersedes.pk if supersedes else None,
        })
    logger.info(
        "Draft fiscal document %s created (%s-%09d)", document.pk, series, sequential,
        extra={"document_id": document.pk},
    )
    return document


def submit_document(
    document_id: int,
    client: FiscalGatewayClient | None = None,
    orchestrator: RetryOrchestrator | None = None,
) -> tuple[FiscalDocument, str | None]:
    """
    First submission of a DRAFT document. On failure the retry orchestrator
    takes over. Documents no longer in DRAFT are left untouched.
    Returns (document, error_message).
    Raises DocumentLeaseUnavailable if another worker is submitting it, or
    DocumentLeaseLost if the attempt was taken over while in flight.
    """
    client = client or FiscalGatewayClient()
    with document_lease(document_id) as token:
        document = _get_document(document_id)
        if document.status != Status.DRAFT:
            logger.info(
                "Document %s already %s; initial submission skipped", document.pk, document.status,
                extra={"document_id": document.pk},
            )
            return document, None

        assign_access_key(document)
        transition(document, Status.SENT)
        response = attempt_submission(document, client, lease_token=token)
        if response.success:
            return document, None

        orchestrator = orchestrator or RetryOrchestrator(client=client)
        orchestrator.handle_initial_failure(document)
        return document, response.message


def cancel_document(
    document_id: int,
    reason: str,
    client: FiscalGatewayClient | None = None,
) -> tuple[FiscalDocument, str | None]:
    """
    Cancel an AUTHORIZED document at the gateway and record the exchange.
    Raises DocumentNotCancellable for any other status.
    Returns (document, error_message).
    """
    if not reason or not reason.strip():
        raise InvalidDocumentPayload("A cancellation reason is required.")
    client = client or FiscalGatewayClient()
    with document_lease(document_id):
        document = _get_document(document_id)
        if document.status != Status.AUTHORIZED:
            raise DocumentNotCancellable(
                f"Document {document.pk} is {document.status}; only AUTHORIZED documents can be cancelled"
            )
        response = client.cancel(document, reason)
        with transaction.atomic():
            record_gateway_response(document, TransactionRecord.Type.CANCELLATION, response)
            if response.success:
                transition(
                    document,
                    Status.CANCELLED,
                    changes={"cancellation_reason": reason[:255]},
                    metadata={"reason": reason},
                )
            else:
                log_audit(document, "cancellation_rejected", {"error": response.message})
    if not response.success:
        logger.warning(
            "Cancellation of document %s rejected: %s", document.pk, response.message,
            extra={"document_id": document.pk, "status_code": response.status_code},
        )
        return document, response.message
    return document, None


def remediate_document(document_id: int, corrected_payload: dict | None = None) -> FiscalDocument:
    """
    Operator remediation: issue a new DRAFT replacing a DEFINITIVELY_FAILED
    document. The failed document is kept unchanged for audit.
    """
    failed = _get_document(document_id)
    if failed.status != Status.DEFINITIVELY_FAILED:
        raise InvalidDocumentPayload(
            f"Document {failed.pk} is {failed.status}; only DEFINITIVELY_FAILED documents can be remediated"
        )
    if failed.superseded_by.exists():
        raise InvalidDocumentPayload(f"Document {failed.pk} was already remediated")
    replacement = create_draft_document(
        corrected_payload if corrected_payload is not None else failed.payload,
        order_reference=failed.order_reference,
        supersedes=failed,
    )
    log_audit(failed, "document_remediated", {"replacement_id": replacement.pk})
    return replacement
