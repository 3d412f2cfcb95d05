"""Tests for the append-only transaction ledger."""

from django.core.exceptions import ValidationError
from django.test import TestCase

from fiscal.models import TransactionRecord
from fiscal.services.transaction_ledger import record_transaction, transactions_for
from fiscal.tests.fakes import make_document


class TransactionLedgerTests(TestCase):
    def setUp(self):
        self.document = make_document(retry_count=3)

    def test_record_transaction(self):
        record = record_transaction(
            self.document,
            TransactionRecord.Type.EMISSION,
            request_payload={"claveAcceso": "123"},
            response_payload={"success": False, "mensaje": "timeout"},
            success=False,
            error_message="timeout",
            status_code=504,
        )
        self.assertEqual(record.document, self.document)
        self.assertEqual(record.retry_count, 3)
        self.assertFalse(record.success)
        self.assertEqual(record.status_code, 504)
        self.assertEqual(list(transactions_for(self.document)), [record])

    def test_sensitive_fields_masked(self):
        record = record_transaction(
            self.document,
            TransactionRecord.Type.EMISSION,
            request_payload={"claveAcceso": "123", "headers": {"Authorization": "Bearer abc"}},
            response_payload={"token": "xyz", "success": True},
            success=True,
        )
        record.refresh_from_db()
        self.assertEqual(record.request_payload["headers"]["Authorization"], "[REDACTED]")
        self.assertEqual(record.request_payload["claveAcceso"], "123")
        self.assertEqual(record.response_payload["token"], "[REDACTED]")

    def test_records_are_immutable(self):
        record = record_transaction(
            self.document, TransactionRecord.Type.EMISSION, {"claveAcceso": "1"}, None, False, "boom"
        )
        record.success = True
        with self.assertRaises(ValidationError):
            record.save()
        with self.assertRaises(ValidationError):
            record.delete()
        record.refresh_from_db()
        self.assertFalse(record.success)
