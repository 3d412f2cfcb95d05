"""Audit event logging for the document lifecycle."""

from fiscal.models import AuditEvent


def log_audit(document, action: str, metadata: dict | None = None) -> AuditEvent:
    """Create AuditEvent."""
    return AuditEvent.objects.create(
        document=document,
        action=action,
        metadata=metadata or {},
    )
