"""
Retry orchestration for documents whose submission failed.

Each invocation performs at most one attempt under the document lease and
then decides the follow-up: another attempt in the same round, the next
round after its delay, or escalation to DEFINITIVELY_FAILED once the attempt
budget is spent. Invocations carry the retry_count they expect; a delivery
whose count no longer matches is a duplicate and does nothing.
"""

import logging
from datetime import timedelta

from django.utils import timezone

from fiscal.exceptions import DocumentLeaseLost
from fiscal.models import FiscalDocument, ScheduledRetry
from fiscal.services.audit import log_audit
from fiscal.services.document_lease import acquire_lease, lease_duration, release_lease
from fiscal.services.document_state import transition
from fiscal.services.gateway_client import FiscalGatewayClient
from fiscal.services.retry_dispatch import claim_dispatch, dispatch_retry
from fiscal.services.retry_policy import RetryPolicy
from fiscal.services.submission import attempt_submission
from fiscal.services.task_scheduler import TaskScheduler, default_scheduler

logger = logging.getLogger("fiscal")

Status = FiscalDocument.Status
Reason = ScheduledRetry.Reason


class Outcome:
    AUTHORIZED = "authorized"
    SCHEDULED = "scheduled"
    DEFINITIVELY_FAILED = "definitively_failed"
    RESOLVED_ELSEWHERE = "resolved_elsewhere"
    LEASE_HELD = "lease_held"
    LEASE_LOST = "lease_lost"
    STALE_DELIVERY = "stale_delivery"
    NOT_RETRYABLE = "not_retryable"
    NOT_FOUND = "not_found"


class RetryOrchestrator:
    def __init__(
        self,
        client: FiscalGatewayClient | None = None,
        scheduler: TaskScheduler | None = None,
        policy: RetryPolicy | None = None,
    ):
        self.client = client or FiscalGatewayClient()
        self.scheduler = scheduler or default_scheduler()
        self.policy = policy or RetryPolicy.from_settings()

    def execute(self, document_id: int, expected_retry_count: int) -> str:
        """Run one retry attempt for the document if it is still due."""
        log_extra = {"document_id": document_id, "retry_count": expected_retry_count}
        token = acquire_lease(document_id)
        if token is None:
            logger.info("Document %s is leased elsewhere; skipping retry", document_id, extra=log_extra)
            return Outcome.LEASE_HELD
        try:
            document = FiscalDocument.objects.filter(pk=document_id).first()
            if document is None:
                logger.warning("Retry for unknown document %s", document_id, extra=log_extra)
                return Outcome.NOT_FOUND
            if document.retry_count != expected_retry_count:
                logger.info(
                    "Stale retry delivery for document %s: expected count %s, found %s",
                    document_id, expected_retry_count, document.retry_count,
                    extra=log_extra,
                )
                return Outcome.STALE_DELIVERY
            if not claim_dispatch(document_id, expected_retry_count):
                logger.info(
                    "Count %s of document %s already taken by another invocation",
                    expected_retry_count, document_id,
                    extra=log_extra,
                )
                return Outcome.STALE_DELIVERY
            if not document.can_retry():
                logger.info(
                    "Document %s not retryable (status=%s, count=%s)",
                    document_id, document.status, document.retry_count,
                    extra=log_extra,
                )
                return Outcome.NOT_RETRYABLE

            try:
                response = attempt_submission(
                    document, self.client, lease_token=token, reconcile=bool(document.access_key)
                )
            except DocumentLeaseLost:
                return Outcome.LEASE_LOST
            if response.success:
                return Outcome.AUTHORIZED
            return self.handle_failure(document)
        finally:
            release_lease(document_id, token)

    def handle_initial_failure(self, document: FiscalDocument) -> str:
        """
        Take over a document whose first submission (attempt 1 of round 1)
        failed. Audits the hand-over, then schedules the follow-up like any
        failed attempt.
        """
        log_audit(document, "retry_chain_started", {
            "retry_count": document.retry_count,
            "error": document.last_error,
            "attempts_per_round": self.policy.attempts_per_round,
            "max_attempts": self.policy.max_attempts,
        })
        logger.warning(
            "Initial submission of document %s failed: %s; automatic retries take over",
            document.pk, document.last_error,
            extra={
                "document_id": document.pk,
                "retry_count": document.retry_count,
                "access_key": document.access_key,
            },
        )
        return self.handle_failure(document)

    def handle_failure(self, document: FiscalDocument) -> str:
        count = document.retry_count
        if count < self.policy.max_attempts and not self.policy.round_exhausted(count):
            dispatch_retry(document, Reason.INTRA_ROUND, self.policy.intra_round_delay, self.scheduler)
            return Outcome.SCHEDULED

        document.refresh_from_db(fields=["status", "retry_count"])
        if document.status not in FiscalDocument.RETRYABLE_STATUSES:
            logger.info(
                "Document %s resolved elsewhere (%s); stopping retries", document.pk, document.status,
                extra={"document_id": document.pk, "retry_count": document.retry_count},
            )
            return Outcome.RESOLVED_ELSEWHERE

        delay = self.policy.next_round_delay(document.retry_count)
        if delay is None:
            return self.escalate(document)
        dispatch_retry(document, Reason.NEXT_ROUND, delay, self.scheduler)
        logger.info(
            "Document %s round %s exhausted; next round in %s",
            document.pk, self.policy.round_for(document.retry_count), delay,
            extra={"document_id": document.pk, "retry_count": document.retry_count},
        )
        return Outcome.SCHEDULED

    def escalate(self, document: FiscalDocument) -> str:
        changed = transition(
            document,
            Status.DEFINITIVELY_FAILED,
            metadata={"reason": "attempts_exhausted"},
        )
        if changed:
            logger.error(
                "Document %s definitively failed after %s attempts: %s",
                document.pk, document.retry_count, document.last_error,
                extra={"document_id": document.pk, "retry_count": document.retry_count},
            )
        return Outcome.DEFINITIVELY_FAILED

    def handle_crash(self, document_id: int, exc: BaseException | None = None) -> bool:
        """
        Supervisory follow-up when a retry invocation died unexpectedly.
        Reschedules a recovery attempt if the document can still be retried.
        """
        document = FiscalDocument.objects.filter(pk=document_id).first()
        if document is None or not document.can_retry():
            return False
        log_audit(document, "retry_crashed", {
            "retry_count": document.retry_count,
            "error": str(exc) if exc else "",
        })
        logger.error(
            "Retry for document %s crashed (%s); recovery in %s",
            document_id, exc, self.policy.recovery_delay,
            extra={"document_id": document_id, "retry_count": document.retry_count},
        )
        return dispatch_retry(document, Reason.RECOVERY, self.policy.recovery_delay, self.scheduler, force=True)

    def retry_now(self, document_id: int) -> bool:
        """Operator-triggered immediate retry."""
        document = FiscalDocument.objects.filter(pk=document_id).first()
        if document is None or not document.can_retry():
            return False
        return dispatch_retry(document, Reason.MANUAL, timedelta(0), self.scheduler, force=True)

    def release_stale_in_flight(self) -> int:
        """Move SENT documents abandoned by a crashed worker back to ERROR."""
        released = 0
        threshold = timezone.now() - lease_duration()
        stale_ids = list(FiscalDocument.objects.stale_in_flight(threshold).values_list("pk", flat=True))
        for document_id in stale_ids:
            token = acquire_lease(document_id)
            if token is None:
                continue
            try:
                document = FiscalDocument.objects.get(pk=document_id)
                if document.status == Status.SENT and transition(
                    document, Status.ERROR, error="Submission interrupted before a gateway response"
                ):
                    released += 1
            finally:
                release_lease(document_id, token)
        return released

    def recover_all(self, dry_run: bool = False) -> int:
        """Dispatch one invocation per retryable document. Returns the number dispatched."""
        if not dry_run:
            self.release_stale_in_flight()
        dispatched = 0
        for document in FiscalDocument.objects.retryable().order_by("id"):
            if dry_run:
                dispatched += 1
            elif dispatch_retry(document, Reason.RECOVERY, timedelta(0), self.scheduler):
                dispatched += 1
        logger.info("Bulk recovery dispatched %s document(s)%s", dispatched, " (dry run)" if dry_run else "")
        return dispatched

    def sweep_due(self) -> int:
        """Automatic sweep over documents whose cooldown has elapsed."""
        self.release_stale_in_flight()
        dispatched = 0
        for document in FiscalDocument.objects.due_for_automatic_sweep():
            if dispatch_retry(document, Reason.SWEEP, timedelta(0), self.scheduler):
                dispatched += 1
        if dispatched:
            logger.info("Automatic sweep dispatched %s document(s)", dispatched)
        return dispatched
