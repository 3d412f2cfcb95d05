"""
Document lifecycle events for downstream consumers (notifications, e-mail).
Receivers must not break the pipeline: failures are logged, never raised.
"""

import logging

from django.dispatch import Signal

logger = logging.getLogger("fiscal")

document_authorized = Signal()
document_cancelled = Signal()
document_definitively_failed = Signal()


def _emit(signal: Signal, name: str, document) -> None:
    for receiver, result in signal.send_robust(sender=document.__class__, document=document):
        if isinstance(result, Exception):
            logger.warning(
                "%s receiver %r failed for document %s: %s",
                name, receiver, document.pk, result,
                extra={"document_id": document.pk},
            )


def emit_document_authorized(document) -> None:
    _emit(document_authorized, "document_authorized", document)


def emit_document_cancelled(document) -> None:
    _emit(document_cancelled, "document_cancelled", document)


def emit_document_definitively_failed(document) -> None:
    _emit(document_definitively_failed, "document_definitively_failed", document)
