"""Tests for the document lifecycle state machine."""

from django.core.exceptions import ValidationError
from django.db import transaction
from django.test import TestCase

from fiscal.exceptions import InvalidTransition
from fiscal.models import AuditEvent, FiscalDocument
from fiscal.services.document_events import document_authorized, document_cancelled
from fiscal.services.document_state import can_transition, transition
from fiscal.tests.fakes import make_document

Status = FiscalDocument.Status


class TransitionTableTests(TestCase):
    def test_legal_transitions(self):
        self.assertTrue(can_transition(Status.DRAFT, Status.SENT))
        self.assertTrue(can_transition(Status.SENT, Status.ERROR))
        self.assertTrue(can_transition(Status.ERROR, Status.FAILED))
        self.assertTrue(can_transition(Status.FAILED, Status.DEFINITIVELY_FAILED))
        self.assertTrue(can_transition(Status.AUTHORIZED, Status.CANCELLED))

    def test_no_way_out_of_cancelled_or_definitively_failed(self):
        for target in Status.values:
            self.assertFalse(can_transition(Status.CANCELLED, target))
            self.assertFalse(can_transition(Status.DEFINITIVELY_FAILED, target))


class TransitionTests(TestCase):
    def test_authorize_sets_code_and_timestamp(self):
        document = make_document(status=Status.ERROR, retry_count=2)
        self.assertTrue(transition(document, Status.AUTHORIZED, authorization_code="AUT-9"))
        document.refresh_from_db()
        self.assertEqual(document.status, Status.AUTHORIZED)
        self.assertEqual(document.authorization_code, "AUT-9")
        self.assertIsNotNone(document.authorized_at)
        self.assertTrue(AuditEvent.objects.filter(document=document, action="status_changed").exists())

    def test_terminal_state_transition_is_noop(self):
        document = make_document(status=Status.AUTHORIZED, authorization_code="AUT-1")
        self.assertFalse(transition(document, Status.FAILED, error="late failure"))
        document.refresh_from_db()
        self.assertEqual(document.status, Status.AUTHORIZED)
        self.assertEqual(document.last_error, "")

    def test_definitively_failed_is_final(self):
        document = make_document(status=Status.DEFINITIVELY_FAILED, retry_count=12)
        self.assertFalse(transition(document, Status.AUTHORIZED))
        self.assertFalse(transition(document, Status.DEFINITIVELY_FAILED))
        document.refresh_from_db()
        self.assertEqual(document.status, Status.DEFINITIVELY_FAILED)

    def test_illegal_transition_from_non_terminal_raises(self):
        document = make_document(status=Status.DRAFT)
        with self.assertRaises(InvalidTransition):
            transition(document, Status.CANCELLED)
        with self.assertRaises(InvalidTransition):
            transition(document, Status.FAILED)

    def test_signals_sent(self):
        received = []

        def on_authorized(sender, document, **kwargs):
            received.append(("authorized", document.pk))

        def on_cancelled(sender, document, **kwargs):
            received.append(("cancelled", document.pk))

        document_authorized.connect(on_authorized)
        document_cancelled.connect(on_cancelled)
        try:
            document = make_document(status=Status.SENT)
            with self.captureOnCommitCallbacks(execute=True):
                transition(document, Status.AUTHORIZED, authorization_code="AUT-2")
                transition(document, Status.CANCELLED)
        finally:
            document_authorized.disconnect(on_authorized)
            document_cancelled.disconnect(on_cancelled)
        self.assertEqual(received, [("authorized", document.pk), ("cancelled", document.pk)])

    def test_failing_receiver_does_not_break_transition(self):
        def broken(sender, document, **kwargs):
            raise RuntimeError("mailer down")

        document_authorized.connect(broken)
        try:
            document = make_document(status=Status.SENT)
            with self.captureOnCommitCallbacks(execute=True):
                self.assertTrue(transition(document, Status.AUTHORIZED))
        finally:
            document_authorized.disconnect(broken)
        document.refresh_from_db()
        self.assertEqual(document.status, Status.AUTHORIZED)


class PayloadFreezeTests(TestCase):
    def test_payload_editable_in_draft(self):
        document = make_document()
        document = FiscalDocument.objects.get(pk=document.pk)
        document.payload = {**document.payload, "currency": "USD"}
        document.save()

    def test_payload_frozen_after_authorization(self):
        document = make_document(status=Status.AUTHORIZED, authorization_code="AUT-3")
        document = FiscalDocument.objects.get(pk=document.pk)
        document.payload = {**document.payload, "currency": "USD"}
        with self.assertRaises(ValidationError):
            document.save()


class SignalCommitTests(TestCase):
    def test_signal_deferred_until_commit(self):
        received = []

        def on_authorized(sender, document, **kwargs):
            received.append(document.pk)

        document_authorized.connect(on_authorized)
        try:
            document = make_document(status=Status.SENT)
            with self.captureOnCommitCallbacks() as callbacks:
                with transaction.atomic():
                    transition(document, Status.AUTHORIZED, authorization_code="AUT-4")
                self.assertEqual(received, [])
            self.assertEqual(len(callbacks), 1)
            callbacks[0]()
        finally:
            document_authorized.disconnect(on_authorized)
        self.assertEqual(received, [document.pk])

    def test_signal_dropped_on_rollback(self):
        received = []

        def on_authorized(sender, document, **kwargs):
            received.append(document.pk)

        document_authorized.connect(on_authorized)
        try:
            document = make_document(status=Status.SENT)
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                with self.assertRaises(RuntimeError):
                    with transaction.atomic():
                        transition(document, Status.AUTHORIZED, authorization_code="AUT-5")
                        raise RuntimeError("ledger write failed")
        finally:
            document_authorized.disconnect(on_authorized)
        self.assertEqual(callbacks, [])
        self.assertEqual(received, [])
        document.refresh_from_db()
        self.assertEqual(document.status, Status.SENT)
