"""
Document lifecycle state machine.

DRAFT -> SENT | AUTHORIZED | ERROR
SENT -> AUTHORIZED | ERROR
ERROR -> AUTHORIZED | FAILED | DEFINITIVELY_FAILED
FAILED -> AUTHORIZED | FAILED | DEFINITIVELY_FAILED
AUTHORIZED -> CANCELLED

AUTHORIZED, CANCELLED and DEFINITIVELY_FAILED are terminal for retries. Any
other transition out of a terminal state is a logged no-op; an illegal
transition out of a non-terminal state raises InvalidTransition.
"""

import logging
from functools import partial

from django.db import transaction
from django.utils import timezone

from fiscal.exceptions import InvalidTransition
from fiscal.models import FiscalDocument
from fiscal.services.audit import log_audit
from fiscal.services.document_events import (
    emit_document_authorized,
    emit_document_cancelled,
    emit_document_definitively_failed,
)

logger = logging.getLogger("fiscal")

Status = FiscalDocument.Status

TRANSITIONS = {
    Status.DRAFT: frozenset({Status.SENT, Status.AUTHORIZED, Status.ERROR}),
    Status.SENT: frozenset({Status.AUTHORIZED, Status.ERROR}),
    Status.ERROR: frozenset({Status.AUTHORIZED, Status.FAILED, Status.DEFINITIVELY_FAILED}),
    Status.FAILED: frozenset({Status.AUTHORIZED, Status.FAILED, Status.DEFINITIVELY_FAILED}),
    Status.AUTHORIZED: frozenset({Status.CANCELLED}),
    Status.CANCELLED: frozenset(),
    Status.DEFINITIVELY_FAILED: frozenset(),
}

_EVENTS = {
    Status.AUTHORIZED: emit_document_authorized,
    Status.CANCELLED: emit_document_cancelled,
    Status.DEFINITIVELY_FAILED: emit_document_definitively_failed,
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def transition(
    document: FiscalDocument,
    target: str,
    *,
    authorization_code: str | None = None,
    error: str | None = None,
    changes: dict | None = None,
    metadata: dict | None = None,
) -> bool:
    """
    Move document to target and persist it together with `changes`.

    Returns True when the status was written, False for a no-op out of a
    terminal state or when the document is already in target.
    """
    current = document.status
    if not can_transition(current, target):
        if current in FiscalDocument.TERMINAL_STATUSES or current == target:
            logger.info(
                "Ignoring transition %s -> %s for document %s",
                current, target, document.pk,
                extra={"document_id": document.pk, "retry_count": document.retry_count},
            )
            return False
        raise InvalidTransition(document.pk, current, target)

    now = timezone.now()
    fields = {"status": target}
    if target == Status.AUTHORIZED:
        fields["authorized_at"] = now
        fields["last_error"] = ""
        if authorization_code:
            fields["authorization_code"] = authorization_code
    elif target == Status.CANCELLED:
        fields["cancelled_at"] = now
    if error is not None:
        fields["last_error"] = error
    fields.update(changes or {})

    for name, value in fields.items():
        setattr(document, name, value)
    document.save(update_fields=[*fields.keys(), "updated_at"])

    log_audit(document, "status_changed", {
        "from": current,
        "to": target,
        "retry_count": document.retry_count,
        **(metadata or {}),
    })
    logger.info(
        "Document %s: %s -> %s",
        document.pk, current, target,
        extra={"document_id": document.pk, "retry_count": document.retry_count},
    )

    emit = _EVENTS.get(target)
    if emit and current != target:
        # Receivers see committed state only
        transaction.on_commit(partial(emit, document))
    return True
