"""Management command: Print submission statistics per status."""

from django.core.management.base import BaseCommand

from fiscal.services.document_queries import statistics


class Command(BaseCommand):
    help = "Print fiscal document counts per status and the authorization success rate."

    def handle(self, *args, **options):
        stats = statistics()
        for status, row in stats["by_status"].items():
            self.stdout.write(f"{status:<20} {row['count']:>8} {row['amount']:>14}")
        self.stdout.write(f"{'TOTAL':<20} {stats['total']:>8}")
        self.stdout.write(f"Retryable: {stats['retryable']}")
        if stats["by_status"]["DEFINITIVELY_FAILED"]["count"]:
            self.stderr.write(
                f"{stats['by_status']['DEFINITIVELY_FAILED']['count']} document(s) need operator remediation"
            )
        self.stdout.write(self.style.SUCCESS(f"Success rate: {stats['success_rate']}%"))
