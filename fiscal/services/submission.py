"""
One submission attempt for a fiscal document.

Callers hold the document lease and pass its token. The attempt counter,
ledger record and status change for an attempt are committed together, and
the counter only moves from the value the attempt started with.
"""

import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from fiscal.exceptions import DocumentLeaseLost
from fiscal.models import FiscalDocument, TransactionRecord
from fiscal.services.access_key import (
    generate_access_key,
    generate_numeric_code,
    validate_access_key_inputs,
)
from fiscal.services.document_lease import ensure_lease
from fiscal.services.document_state import transition
from fiscal.services.gateway_client import FiscalGatewayClient, GatewayResponse
from fiscal.services.transaction_ledger import record_gateway_response

logger = logging.getLogger("fiscal")

_MAX_KEY_COLLISIONS = 3


def assign_access_key(document: FiscalDocument) -> str:
    """
    Generate and persist the access key if the document has none yet.
    Raises ValueError when a key component is malformed.
    """
    if document.access_key:
        return document.access_key
    numeric_code = generate_numeric_code()
    validate_access_key_inputs(
        document.document_type,
        document.issuer_tax_id,
        document.environment,
        document.series,
        document.sequential_number,
        numeric_code,
        document.emission_type,
    )
    for _ in range(_MAX_KEY_COLLISIONS):
        key = generate_access_key(
            document.issue_date,
            document.document_type,
            document.issuer_tax_id,
            document.environment,
            document.series,
            document.sequential_number,
            numeric_code,
            document.emission_type,
        )
        try:
            with transaction.atomic():
                updated = FiscalDocument.objects.filter(
                    pk=document.pk, access_key__isnull=True
                ).update(access_key=key)
        except IntegrityError:
            numeric_code = generate_numeric_code()
            continue
        if not updated:
            # Assigned concurrently; keep the stored one
            document.refresh_from_db(fields=["access_key"])
            return document.access_key
        document.access_key = key
        logger.info(
            "Access key assigned to document %s", document.pk,
            extra={"document_id": document.pk, "access_key": key},
        )
        return key
    raise RuntimeError(f"assign_access_key({document.pk}): too many key collisions")


def _reconcile(document: FiscalDocument, client: FiscalGatewayClient) -> GatewayResponse | None:
    """Authorized response if the authority already holds this key as authorized."""
    response = client.query_status(document.access_key)
    if response.is_authorized:
        logger.info(
            "Document %s already authorized at the gateway; skipping resubmission", document.pk,
            extra={"document_id": document.pk, "access_key": document.access_key},
        )
        return response
    return None


def _count_attempt(document: FiscalDocument, expected_retry_count: int, response: GatewayResponse) -> None:
    """
    Advance the counter from the value this attempt started with. Raises
    DocumentLeaseLost when another attempt already moved it; the response is
    then logged but neither recorded nor applied.
    """
    now = timezone.now()
    counted = FiscalDocument.objects.filter(pk=document.pk, retry_count=expected_retry_count).update(
        retry_count=F("retry_count") + 1, last_retry_at=now, updated_at=now
    )
    if not counted:
        logger.error(
            "Attempt at count %s for document %s lost to a concurrent attempt; "
            "gateway answered success=%s code=%s message=%s",
            expected_retry_count, document.pk, response.success,
            response.authorization_code, response.message,
            extra={
                "document_id": document.pk,
                "retry_count": expected_retry_count,
                "status_code": response.status_code,
            },
        )
        raise DocumentLeaseLost(
            f"Document {document.pk}: counter moved past {expected_retry_count} during the attempt"
        )
    document.retry_count = expected_retry_count + 1
    document.last_retry_at = now


def attempt_submission(
    document: FiscalDocument,
    client: FiscalGatewayClient,
    *,
    lease_token: str,
    reconcile: bool = False,
) -> GatewayResponse:
    """
    Run one attempt: submit (or resolve through a status query), then count it,
    record it in the ledger and move the document to AUTHORIZED, ERROR or FAILED.

    The lease is renewed before each gateway call. Raises DocumentLeaseLost
    when it was taken over, or when another attempt counted this counter value
    first.
    """
    expected_retry_count = document.retry_count
    assign_access_key(document)

    response = None
    if reconcile and getattr(settings, "FISCAL_RECONCILE_BEFORE_RETRY", True):
        ensure_lease(document.pk, lease_token)
        response = _reconcile(document, client)
    if response is None:
        ensure_lease(document.pk, lease_token)
        response = client.submit(document)

    if response.success:
        target = FiscalDocument.Status.AUTHORIZED
    elif document.status in (FiscalDocument.Status.DRAFT, FiscalDocument.Status.SENT):
        target = FiscalDocument.Status.ERROR
    else:
        target = FiscalDocument.Status.FAILED

    with transaction.atomic():
        _count_attempt(document, expected_retry_count, response)
        record_gateway_response(document, TransactionRecord.Type.EMISSION, response)
        transition(
            document,
            target,
            authorization_code=response.authorization_code if response.success else None,
            error=None if response.success else response.message,
            metadata={"attempt": document.retry_count},
        )
    return response
