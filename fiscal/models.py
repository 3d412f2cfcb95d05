from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

MAX_ATTEMPTS_DEFAULT = 12


def max_attempts() -> int:
    return getattr(settings, "FISCAL_MAX_ATTEMPTS", MAX_ATTEMPTS_DEFAULT)


class FiscalDocumentQuerySet(models.QuerySet):
    """Retrieval queries used by the retry orchestrator and operator tooling."""

    def retryable(self):
        """ERROR or FAILED documents that still have attempts left."""
        return self.filter(
            status__in=FiscalDocument.RETRYABLE_STATUSES,
            retry_count__lt=max_attempts(),
        )

    def definitively_failed(self):
        return self.filter(status=FiscalDocument.Status.DEFINITIVELY_FAILED)

    def due_for_automatic_sweep(self, now=None, cooldown=None, limit=None):
        """
        Retryable documents whose last attempt is older than the cooldown
        (or that never had one), oldest first, capped at the sweep batch size.
        """
        now = now or timezone.now()
        if cooldown is None:
            cooldown = timedelta(
                minutes=getattr(settings, "FISCAL_SWEEP_COOLDOWN_MINUTES", 30)
            )
        if limit is None:
            limit = getattr(settings, "FISCAL_SWEEP_BATCH_SIZE", 10)
        threshold = now - cooldown
        qs = self.retryable().filter(
            Q(last_retry_at__isnull=True) | Q(last_retry_at__lt=threshold)
        ).order_by(F("last_retry_at").asc(nulls_first=True), "id")
        return qs[:limit]

    def stale_in_flight(self, older_than):
        """SENT documents nobody has touched since `older_than`."""
        return self.filter(status=FiscalDocument.Status.SENT, updated_at__lt=older_than)

    def authorized_in_month(self, year: int, month: int):
        return self.filter(
            status=FiscalDocument.Status.AUTHORIZED,
            issue_date__year=year,
            issue_date__month=month,
        )


class FiscalDocument(models.Model):
    """
    Legally-structured sales document submitted to the tax-authority gateway.
    Never deleted; terminal states are kept for audit.
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        SENT = "SENT", "Sent"
        AUTHORIZED = "AUTHORIZED", "Authorized"
        ERROR = "ERROR", "Error"
        FAILED = "FAILED", "Failed"
        DEFINITIVELY_FAILED = "DEFINITIVELY_FAILED", "Definitively failed"
        CANCELLED = "CANCELLED", "Cancelled"

    RETRYABLE_STATUSES = (Status.ERROR, Status.FAILED)
    TERMINAL_STATUSES = (Status.AUTHORIZED, Status.CANCELLED, Status.DEFINITIVELY_FAILED)

    issuer_tax_id = models.CharField(max_length=13)
    series = models.CharField(max_length=6)
    document_type = models.CharField(max_length=2, default="01")
    environment = models.CharField(max_length=1, default="1")  # 1 test, 2 production
    emission_type = models.CharField(max_length=1, default="1")
    sequential_number = models.PositiveIntegerField()
    issue_date = models.DateField(default=timezone.localdate)
    access_key = models.CharField(max_length=49, unique=True, null=True, blank=True)
    authorization_code = models.CharField(max_length=64, null=True, blank=True)
    status = models.CharField(
        max_length=24, choices=Status.choices, default=Status.DRAFT, db_index=True
    )
    retry_count = models.PositiveIntegerField(default=0)
    last_retry_at = models.DateTimeField(null=True, blank=True)
    last_error = models.TextField(blank=True)
    payload = models.JSONField(default=dict)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    order_reference = models.CharField(max_length=64, blank=True, db_index=True)
    supersedes = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        related_name="superseded_by",
        null=True,
        blank=True,
    )
    cancellation_reason = models.CharField(max_length=255, blank=True)
    authorized_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    lease_token = models.CharField(max_length=32, blank=True)
    lease_expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = FiscalDocumentQuerySet.as_manager()

    class Meta:
        verbose_name = "Fiscal Document"
        verbose_name_plural = "Fiscal Documents"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["issuer_tax_id", "series", "sequential_number"],
                name="unique_fiscal_document_sequential",
            ),
        ]

    def __str__(self):
        return f"{self.series}-{self.sequential_number:09d} ({self.status})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_payload = instance.__dict__.get("payload")
        instance._loaded_status = instance.__dict__.get("status")
        return instance

    def save(self, *args, **kwargs):
        """Business payload is frozen once the document has left DRAFT."""
        loaded_status = getattr(self, "_loaded_status", None)
        if (
            self.pk
            and loaded_status
            and loaded_status != self.Status.DRAFT
            and "payload" in self.__dict__
            and self.payload != getattr(self, "_loaded_payload", self.payload)
        ):
            raise ValidationError(
                f"Payload of fiscal document {self.pk} is frozen in status {loaded_status}."
            )
        super().save(*args, **kwargs)
        self._loaded_payload = self.__dict__.get("payload")
        self._loaded_status = self.status

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def can_retry(self) -> bool:
        return self.status in self.RETRYABLE_STATUSES and self.retry_count < max_attempts()


class TransactionRecord(models.Model):
    """Ledger entry for one gateway exchange. Immutable."""

    class Type(models.TextChoices):
        EMISSION = "EMISSION", "Emission"
        CANCELLATION = "CANCELLATION", "Cancellation"

    document = models.ForeignKey(
        FiscalDocument, on_delete=models.PROTECT, related_name="transactions"
    )
    type = models.CharField(max_length=16, choices=Type.choices)
    request_payload = models.JSONField(default=dict)
    response_payload = models.JSONField(null=True, blank=True)
    success = models.BooleanField(default=False)
    error_message = models.TextField(null=True, blank=True)
    status_code = models.IntegerField(null=True, blank=True)
    retry_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Transaction Record"
        verbose_name_plural = "Transaction Records"
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.type} doc={self.document_id} {'ok' if self.success else 'failed'}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError("Transaction records are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Transaction records cannot be deleted.")


class ScheduledRetry(models.Model):
    """
    One dispatched retry invocation, keyed by the counter value it expects.
    Makes bulk recovery idempotent.
    """

    class Reason(models.TextChoices):
        INTRA_ROUND = "INTRA_ROUND", "Intra-round"
        NEXT_ROUND = "NEXT_ROUND", "Next round"
        RECOVERY = "RECOVERY", "Crash recovery"
        SWEEP = "SWEEP", "Automatic sweep"
        MANUAL = "MANUAL", "Manual"

    class State(models.TextChoices):
        PENDING = "PENDING", "Pending"
        CONSUMED = "CONSUMED", "Consumed"

    document = models.ForeignKey(
        FiscalDocument, on_delete=models.CASCADE, related_name="scheduled_retries"
    )
    retry_count = models.PositiveIntegerField()
    reason = models.CharField(max_length=16, choices=Reason.choices)
    run_at = models.DateTimeField()
    state = models.CharField(max_length=10, choices=State.choices, default=State.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Scheduled Retry"
        verbose_name_plural = "Scheduled Retries"
        ordering = ["run_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["document", "retry_count"],
                name="unique_scheduled_retry_per_count",
            ),
        ]

    def __str__(self):
        return f"doc={self.document_id} count={self.retry_count} {self.reason} {self.state}"


class DocumentSequence(models.Model):
    """Last sequential number issued per issuer and series."""

    issuer_tax_id = models.CharField(max_length=13)
    series = models.CharField(max_length=6)
    last_number = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = "Document Sequence"
        verbose_name_plural = "Document Sequences"
        constraints = [
            models.UniqueConstraint(
                fields=["issuer_tax_id", "series"],
                name="unique_document_sequence",
            ),
        ]

    def __str__(self):
        return f"{self.issuer_tax_id}/{self.series}: {self.last_number}"


class AuditEvent(models.Model):
    """Audit timeline for the document lifecycle. Immutable."""

    document = models.ForeignKey(
        FiscalDocument,
        on_delete=models.PROTECT,
        related_name="audit_events",
        null=True,
        blank=True,
    )
    action = models.CharField(max_length=100)  # status_changed, retry_scheduled, escalated, etc.
    metadata = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Audit Event"
        verbose_name_plural = "Audit Events"
        ordering = ["-created_at"]
