"""Management command: Bulk recovery of retryable fiscal documents. Run after an outage."""

from django.core.management.base import BaseCommand

from fiscal.models import FiscalDocument
from fiscal.services.retry_orchestrator import RetryOrchestrator


class Command(BaseCommand):
    help = "Dispatch one retry per ERROR/FAILED document that still has attempts left."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="List documents without dispatching")

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        if dry_run:
            for document in FiscalDocument.objects.retryable().order_by("id"):
                self.stdout.write(
                    f"Document {document.pk}: {document.status}, {document.retry_count} attempts"
                    f"{', last error: ' + document.last_error[:80] if document.last_error else ''}"
                )
        dispatched = RetryOrchestrator().recover_all(dry_run=dry_run)
        if dry_run:
            self.stdout.write(f"{dispatched} document(s) would be dispatched.")
        else:
            self.stdout.write(self.style.SUCCESS(f"Dispatched {dispatched} document(s)."))
