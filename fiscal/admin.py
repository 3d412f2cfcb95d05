from django.contrib import admin, messages

from .models import AuditEvent, DocumentSequence, FiscalDocument, ScheduledRetry, TransactionRecord
from .services.retry_orchestrator import RetryOrchestrator


class TransactionRecordInline(admin.TabularInline):
    model = TransactionRecord
    extra = 0
    can_delete = False
    fields = ("type", "success", "status_code", "retry_count", "error_message", "created_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(FiscalDocument)
class FiscalDocumentAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "series",
        "sequential_number",
        "status",
        "retry_count",
        "access_key",
        "total_amount",
        "last_retry_at",
        "updated_at",
    )
    list_filter = ("status", "environment")
    search_fields = ("access_key", "authorization_code", "order_reference")
    readonly_fields = (
        "issuer_tax_id",
        "series",
        "sequential_number",
        "access_key",
        "authorization_code",
        "status",
        "retry_count",
        "last_retry_at",
        "last_error",
        "payload",
        "lease_token",
        "lease_expires_at",
        "authorized_at",
        "cancelled_at",
        "supersedes",
    )
    inlines = [TransactionRecordInline]
    actions = ["retry_selected"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description="Retry selected documents now")
    def retry_selected(self, request, queryset):
        orchestrator = RetryOrchestrator()
        dispatched = sum(1 for document in queryset if orchestrator.retry_now(document.pk))
        self.message_user(request, f"Dispatched {dispatched} retr{'y' if dispatched == 1 else 'ies'}.", messages.INFO)


@admin.register(TransactionRecord)
class TransactionRecordAdmin(admin.ModelAdmin):
    list_display = ("document", "type", "success", "status_code", "retry_count", "created_at")
    list_filter = ("type", "success")
    search_fields = ("document__access_key",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(ScheduledRetry)
class ScheduledRetryAdmin(admin.ModelAdmin):
    list_display = ("document", "retry_count", "reason", "state", "run_at")
    list_filter = ("reason", "state")


@admin.register(DocumentSequence)
class DocumentSequenceAdmin(admin.ModelAdmin):
    list_display = ("issuer_tax_id", "series", "last_number")


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ("document", "action", "created_at")
    list_filter = ("action",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
