"""Management command: Automatic retry sweep. Run via cron when celery beat is not used."""

from django.core.management.base import BaseCommand

from fiscal.services.retry_orchestrator import RetryOrchestrator


class Command(BaseCommand):
    help = "Dispatch retries for documents whose cooldown since the last attempt has elapsed."

    def handle(self, *args, **options):
        dispatched = RetryOrchestrator().sweep_due()
        self.stdout.write(self.style.SUCCESS(f"Sweep dispatched {dispatched} document(s)."))
