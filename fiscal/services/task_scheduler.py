"""
Delayed task scheduling for retry invocations.

The orchestrator only talks to the TaskScheduler interface; the Celery
implementation enqueues fiscal.retry_document_task with a countdown.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

logger = logging.getLogger("fiscal")


@dataclass(frozen=True)
class RetryTask:
    document_id: int
    retry_count: int
    reason: str


class TaskScheduler:
    """Deliver a RetryTask to a worker after `delay`."""

    def enqueue(self, task: RetryTask, delay: timedelta) -> None:
        raise NotImplementedError


class CeleryTaskScheduler(TaskScheduler):
    def enqueue(self, task: RetryTask, delay: timedelta) -> None:
        from fiscal.tasks import retry_document_task

        countdown = max(0, int(delay.total_seconds()))
        retry_document_task.apply_async(
            kwargs={
                "document_id": task.document_id,
                "expected_retry_count": task.retry_count,
                "reason": task.reason,
            },
            countdown=countdown,
        )
        logger.info(
            "Enqueued retry for document %s (expected_count=%s, reason=%s, countdown=%ss)",
            task.document_id, task.retry_count, task.reason, countdown,
            extra={"document_id": task.document_id, "retry_count": task.retry_count, "reason": task.reason},
        )


def default_scheduler() -> TaskScheduler:
    return CeleryTaskScheduler()
