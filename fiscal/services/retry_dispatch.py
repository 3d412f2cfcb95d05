"""
Idempotent dispatch of retry invocations.

Each dispatch is keyed by (document, retry_count): the counter value the
invocation expects to find. A PENDING entry for the same key means a task is
already on its way, so recovery sweeps and duplicate triggers do not enqueue
a second one unless the entry has gone stale.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from fiscal.models import ScheduledRetry
from fiscal.services.audit import log_audit
from fiscal.services.task_scheduler import RetryTask, TaskScheduler

logger = logging.getLogger("fiscal")


def stale_after() -> timedelta:
    return timedelta(minutes=getattr(settings, "FISCAL_DISPATCH_STALE_MINUTES", 15))


def dispatch_retry(
    document,
    reason: str,
    delay: timedelta,
    scheduler: TaskScheduler,
    *,
    force: bool = False,
) -> bool:
    """
    Schedule one retry invocation for the document's current retry_count.
    Returns False when a live PENDING dispatch for the same key exists.
    """
    now = timezone.now()
    run_at = now + delay
    with transaction.atomic():
        entry, created = ScheduledRetry.objects.select_for_update().get_or_create(
            document=document,
            retry_count=document.retry_count,
            defaults={"reason": reason, "run_at": run_at},
        )
        if not created:
            live = entry.state == ScheduledRetry.State.PENDING and entry.run_at > now - stale_after()
            if live and not force:
                logger.info(
                    "Retry for document %s at count %s already pending (%s); skipping",
                    document.pk, document.retry_count, entry.reason,
                    extra={"document_id": document.pk, "retry_count": document.retry_count},
                )
                return False
            entry.reason = reason
            entry.run_at = run_at
            entry.state = ScheduledRetry.State.PENDING
            entry.save(update_fields=["reason", "run_at", "state", "updated_at"])
        log_audit(document, "retry_scheduled", {
            "retry_count": document.retry_count,
            "reason": reason,
            "delay_seconds": int(delay.total_seconds()),
        })

    scheduler.enqueue(RetryTask(document.pk, document.retry_count, reason), delay)
    return True


def claim_dispatch(document_id: int, retry_count: int) -> bool:
    """
    Take the (document, retry_count) dispatch for this invocation.
    False when another invocation already consumed it: only one attempt runs
    per counter value until a recovery or sweep dispatch reopens the key.
    """
    now = timezone.now()
    with transaction.atomic():
        entry, created = ScheduledRetry.objects.select_for_update().get_or_create(
            document_id=document_id,
            retry_count=retry_count,
            defaults={
                "reason": ScheduledRetry.Reason.MANUAL,
                "run_at": now,
                "state": ScheduledRetry.State.CONSUMED,
            },
        )
        if created:
            return True
        if entry.state == ScheduledRetry.State.CONSUMED:
            return False
        entry.state = ScheduledRetry.State.CONSUMED
        entry.save(update_fields=["state", "updated_at"])
    return True


def pending_for(document):
    return ScheduledRetry.objects.filter(document=document, state=ScheduledRetry.State.PENDING)
