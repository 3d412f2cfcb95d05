"""
Read-side queries for operators and reporting: statistics, monthly report,
lookup by access key and per-document retry information.
"""

from decimal import Decimal

from django.db.models import Count, Sum

from fiscal.models import FiscalDocument
from fiscal.services.retry_dispatch import pending_for
from fiscal.services.retry_policy import RetryPolicy


def find_by_access_key(access_key: str) -> FiscalDocument | None:
    return FiscalDocument.objects.filter(access_key=access_key).first()


def statistics() -> dict:
    """Counts and amount totals per status plus the authorization success rate (%)."""
    rows = FiscalDocument.objects.values("status").annotate(
        count=Count("id"), amount=Sum("total_amount")
    )
    by_status = {status: {"count": 0, "amount": "0.00"} for status in FiscalDocument.Status.values}
    total = 0
    for row in rows:
        by_status[row["status"]] = {
            "count": row["count"],
            "amount": f"{row['amount'] or Decimal('0'):.2f}",
        }
        total += row["count"]
    authorized = by_status[FiscalDocument.Status.AUTHORIZED]["count"]
    success_rate = round(authorized / total * 100, 2) if total else 0
    return {
        "total": total,
        "by_status": by_status,
        "retryable": FiscalDocument.objects.retryable().count(),
        "success_rate": success_rate,
    }


def monthly_report(year: int, month: int) -> dict:
    """Authorized documents issued in the month: count, totals and daily breakdown."""
    qs = FiscalDocument.objects.authorized_in_month(year, month)
    totals = qs.aggregate(count=Count("id"), amount=Sum("total_amount"))
    daily = (
        qs.values("issue_date")
        .annotate(count=Count("id"), amount=Sum("total_amount"))
        .order_by("issue_date")
    )
    return {
        "year": year,
        "month": month,
        "count": totals["count"] or 0,
        "total_amount": f"{totals['amount'] or Decimal('0'):.2f}",
        "daily": [
            {
                "date": row["issue_date"].isoformat(),
                "count": row["count"],
                "total_amount": f"{row['amount'] or Decimal('0'):.2f}",
            }
            for row in daily
        ],
    }


def retry_info(document: FiscalDocument, policy: RetryPolicy | None = None) -> dict:
    """Round/attempt position, retryability and pending dispatches for a document."""
    policy = policy or RetryPolicy.from_settings()
    info = policy.describe(document.retry_count)
    info.update({
        "can_retry": document.can_retry(),
        "last_retry_at": document.last_retry_at.isoformat() if document.last_retry_at else None,
        "last_error": document.last_error,
        "pending": [
            {"retry_count": entry.retry_count, "reason": entry.reason, "run_at": entry.run_at.isoformat()}
            for entry in pending_for(document)
        ],
    })
    return info


def serialize_document(document: FiscalDocument) -> dict:
    return {
        "id": document.pk,
        "series": document.series,
        "sequential_number": document.sequential_number,
        "issue_date": document.issue_date.isoformat(),
        "access_key": document.access_key,
        "authorization_code": document.authorization_code,
        "status": document.status,
        "retry_count": document.retry_count,
        "total_amount": f"{document.total_amount:.2f}",
        "order_reference": document.order_reference,
        "supersedes": document.supersedes_id,
        "created_at": document.created_at.isoformat(),
        "updated_at": document.updated_at.isoformat(),
    }
