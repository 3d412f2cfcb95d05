"""Receivers for document lifecycle signals."""

import logging

from django.dispatch import receiver

from fiscal.services.document_events import (
    document_authorized,
    document_cancelled,
    document_definitively_failed,
)

logger = logging.getLogger("fiscal")


@receiver(document_authorized)
def log_document_authorized(sender, document, **kwargs):
    logger.info(
        "Document %s authorized (%s)", document.pk, document.authorization_code,
        extra={"document_id": document.pk, "access_key": document.access_key},
    )


@receiver(document_cancelled)
def log_document_cancelled(sender, document, **kwargs):
    logger.info(
        "Document %s cancelled: %s", document.pk, document.cancellation_reason,
        extra={"document_id": document.pk, "access_key": document.access_key},
    )


@receiver(document_definitively_failed)
def alert_document_definitively_failed(sender, document, **kwargs):
    """Operators must remediate these by hand."""
    logger.error(
        "Document %s needs operator remediation after %s attempts",
        document.pk, document.retry_count,
        extra={"document_id": document.pk, "retry_count": document.retry_count},
    )
