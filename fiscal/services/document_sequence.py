"""
Sequential numbering per (issuer tax id, series). Monotonic, never reused.
"""

from django.db import transaction
from django.db.utils import IntegrityError

from fiscal.models import DocumentSequence

_MAX_SEQUENCE_RETRIES = 5


def next_sequential_number(issuer_tax_id: str, series: str) -> int:
    """
    Reserve and return the next sequential number for the issuer and series.
    Atomic; retries on concurrent create (IntegrityError).
    """
    for _ in range(_MAX_SEQUENCE_RETRIES):
        try:
            with transaction.atomic():
                seq = DocumentSequence.objects.select_for_update().filter(
                    issuer_tax_id=issuer_tax_id, series=series
                ).first()
                if seq:
                    seq.last_number += 1
                    seq.save(update_fields=["last_number"])
                    return seq.last_number
                DocumentSequence.objects.create(
                    issuer_tax_id=issuer_tax_id, series=series, last_number=1
                )
                return 1
        except IntegrityError:
            # Another process created the row; retry to lock and increment
            continue
    raise RuntimeError(
        f"next_sequential_number({issuer_tax_id}, {series}): too many retries (concurrent contention)"
    )


def peek_sequential_number(issuer_tax_id: str, series: str) -> int:
    """Last number issued, without advancing. 0 when nothing was issued yet."""
    seq = DocumentSequence.objects.filter(issuer_tax_id=issuer_tax_id, series=series).first()
    return seq.last_number if seq else 0
