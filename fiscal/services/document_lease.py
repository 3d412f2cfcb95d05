"""
Per-document lease. At most one worker submits a given document at a time.

The lease is a conditional UPDATE on the document row, so it is atomic on
every database backend. A crashed holder loses the lease when it expires.
The lease never runs shorter than one worst-case attempt (a status query
with transport retries followed by one emission call), and holders renew it
before each gateway call.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import timedelta

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from fiscal.exceptions import DocumentLeaseLost, DocumentLeaseUnavailable
from fiscal.models import FiscalDocument
from fiscal.services.http_client import worst_case_request_seconds

logger = logging.getLogger("fiscal")

_LEASE_MARGIN_SECONDS = 60


def worst_case_attempt() -> timedelta:
    timeout = getattr(settings, "FISCAL_GATEWAY_TIMEOUT", 30)
    return timedelta(seconds=(
        worst_case_request_seconds(timeout, retry=True)
        + worst_case_request_seconds(timeout, retry=False)
    ))


def lease_duration() -> timedelta:
    configured = timedelta(seconds=getattr(settings, "FISCAL_LEASE_SECONDS", 600))
    return max(configured, worst_case_attempt() + timedelta(seconds=_LEASE_MARGIN_SECONDS))


def _free(now):
    return Q(lease_expires_at__isnull=True) | Q(lease_expires_at__lte=now)


def acquire_lease(document_id: int) -> str | None:
    """Return a lease token, or None if another worker holds a live lease."""
    now = timezone.now()
    token = uuid.uuid4().hex
    updated = FiscalDocument.objects.filter(pk=document_id).filter(_free(now)).update(
        lease_token=token, lease_expires_at=now + lease_duration()
    )
    return token if updated else None


def renew_lease(document_id: int, token: str) -> bool:
    """
    Extend our lease for another full window. A lease that expired and was
    not taken by anyone is picked up again; False when another worker now
    holds a live lease.
    """
    now = timezone.now()
    updated = FiscalDocument.objects.filter(pk=document_id).filter(
        Q(lease_token=token) | _free(now)
    ).update(lease_token=token, lease_expires_at=now + lease_duration())
    return bool(updated)


def ensure_lease(document_id: int, token: str) -> None:
    """Renew the lease before a gateway call. Raises DocumentLeaseLost."""
    if not renew_lease(document_id, token):
        logger.warning(
            "Lease on document %s taken over by another worker", document_id,
            extra={"document_id": document_id},
        )
        raise DocumentLeaseLost(f"Document {document_id}: lease taken over by another worker")


def release_lease(document_id: int, token: str) -> None:
    FiscalDocument.objects.filter(pk=document_id, lease_token=token).update(
        lease_token="", lease_expires_at=None
    )


@contextmanager
def document_lease(document_id: int):
    """
    Hold the document lease for the duration of the block.
    Raises DocumentLeaseUnavailable when it is held elsewhere.
    """
    token = acquire_lease(document_id)
    if token is None:
        raise DocumentLeaseUnavailable(f"Document {document_id} is leased by another worker")
    try:
        yield token
    finally:
        release_lease(document_id, token)
