"""
Celery tasks for the fiscal submission pipeline.

Tasks: submit_document_task, retry_document_task, sweep_due_documents_task,
recover_retryable_documents_task. Delivery is at-least-once (acks_late);
the document lease and the expected retry_count make redelivery harmless.
"""

import logging
from typing import Any

from celery import Task, shared_task

from fiscal.exceptions import DocumentLeaseUnavailable, DocumentNotFound
from fiscal.services.document_service import submit_document
from fiscal.services.retry_orchestrator import RetryOrchestrator

logger = logging.getLogger("fiscal")


class RetryDocumentTask(Task):
    """Hands crashed retry invocations to the orchestrator's supervisory handler."""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        document_id = kwargs.get("document_id") if kwargs else None
        if document_id is None and args:
            document_id = args[0]
        if document_id is None:
            return
        logger.error(
            "Retry task %s for document %s failed: %s", task_id, document_id, exc,
            extra={"document_id": document_id},
        )
        RetryOrchestrator().handle_crash(document_id, exc)


@shared_task(bind=True, name="fiscal.submit_document_task")
def submit_document_task(self, document_id: int) -> dict[str, Any]:
    """
    Initial submission of a DRAFT document.
    Returns {"success": True, "status": ...} or {"success": False, "error": str}.
    """
    try:
        document, err = submit_document(document_id)
    except DocumentNotFound as e:
        logger.warning("submit_document_task: %s", e, extra={"document_id": document_id})
        return {"success": False, "error": str(e)}
    except DocumentLeaseUnavailable as e:
        logger.info("submit_document_task: %s", e, extra={"document_id": document_id})
        return {"success": False, "error": str(e)}
    if err:
        return {"success": False, "error": err, "status": document.status}
    return {"success": True, "status": document.status}


@shared_task(bind=True, base=RetryDocumentTask, name="fiscal.retry_document_task")
def retry_document_task(self, document_id: int, expected_retry_count: int, reason: str = "") -> dict[str, Any]:
    """One retry attempt for a document; see RetryOrchestrator.execute."""
    logger.info(
        "Retry task for document %s (expected_count=%s, reason=%s)",
        document_id, expected_retry_count, reason,
        extra={"document_id": document_id, "retry_count": expected_retry_count, "reason": reason},
    )
    outcome = RetryOrchestrator().execute(document_id, expected_retry_count)
    return {"document_id": document_id, "outcome": outcome}


@shared_task(bind=True, name="fiscal.sweep_due_documents_task")
def sweep_due_documents_task(self) -> dict[str, Any]:
    """Periodic sweep (celery beat) over retryable documents past their cooldown."""
    dispatched = RetryOrchestrator().sweep_due()
    return {"dispatched": dispatched}


@shared_task(bind=True, name="fiscal.recover_retryable_documents_task")
def recover_retryable_documents_task(self) -> dict[str, Any]:
    """Bulk recovery: one invocation per retryable document."""
    dispatched = RetryOrchestrator().recover_all()
    return {"dispatched": dispatched}
