"""Tests for the operator JSON API and health endpoint."""

import json
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase

from fiscal.models import FiscalDocument
from fiscal.tests.fakes import FakeGatewayClient, make_document, ok_response

Status = FiscalDocument.Status
KEY = "1501202501179001234500110010010000000011234567811"


class OperatorApiTests(TestCase):
    def setUp(self):
        user = get_user_model().objects.create_user("operator", password="pw", is_staff=True)
        self.client.force_login(user)

    def test_requires_staff(self):
        self.client.logout()
        response = self.client.get("/fiscal/api/documents/statistics/")
        self.assertEqual(response.status_code, 302)

    def test_document_detail_includes_retry_info(self):
        document = make_document(status=Status.FAILED, retry_count=4, access_key=KEY)
        response = self.client.get(f"/fiscal/api/documents/{document.pk}/")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["status"], "FAILED")
        self.assertEqual(data["retry_info"]["current_round"], 2)
        self.assertEqual(data["retry_info"]["attempt_in_round"], 1)
        self.assertEqual(data["transactions"], [])

    def test_document_detail_not_found(self):
        self.assertEqual(self.client.get("/fiscal/api/documents/999/").status_code, 404)

    def test_by_access_key(self):
        document = make_document(status=Status.AUTHORIZED, access_key=KEY)
        response = self.client.get(f"/fiscal/api/documents/by-key/{KEY}/")
        self.assertEqual(response.json()["id"], document.pk)

    @patch("fiscal.views_api.RetryOrchestrator")
    def test_manual_retry(self, mock_orchestrator):
        mock_orchestrator.return_value.retry_now.return_value = True
        document = make_document(status=Status.ERROR, retry_count=2)
        response = self.client.post(f"/fiscal/api/documents/{document.pk}/retry/")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["success"])
        mock_orchestrator.return_value.retry_now.assert_called_once_with(document.pk)

    def test_manual_retry_refused_when_not_retryable(self):
        document = make_document(status=Status.DEFINITIVELY_FAILED, retry_count=12)
        response = self.client.post(f"/fiscal/api/documents/{document.pk}/retry/")
        self.assertEqual(response.status_code, 409)

    @patch("fiscal.services.document_service.FiscalGatewayClient")
    def test_cancel(self, mock_client_cls):
        mock_client_cls.return_value = FakeGatewayClient(responses=[ok_response()])
        document = make_document(status=Status.AUTHORIZED, access_key=KEY)
        response = self.client.post(
            f"/fiscal/api/documents/{document.pk}/cancel/",
            data=json.dumps({"reason": "Duplicate order"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["document"]["status"], "CANCELLED")

    def test_cancel_not_authorized_conflict(self):
        document = make_document(status=Status.FAILED, retry_count=3)
        response = self.client.post(
            f"/fiscal/api/documents/{document.pk}/cancel/",
            data=json.dumps({"reason": "Duplicate order"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 409)

    def test_cancel_invalid_json(self):
        document = make_document(status=Status.AUTHORIZED, access_key=KEY)
        response = self.client.post(
            f"/fiscal/api/documents/{document.pk}/cancel/", data="{not json", content_type="application/json"
        )
        self.assertEqual(response.status_code, 400)

    def test_remediate(self):
        document = make_document(status=Status.DEFINITIVELY_FAILED, retry_count=12)
        response = self.client.post(
            f"/fiscal/api/documents/{document.pk}/remediate/", data="{}", content_type="application/json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["document"]["supersedes"], document.pk)

    def test_statistics_and_definitively_failed(self):
        make_document(status=Status.AUTHORIZED)
        dead = make_document(status=Status.DEFINITIVELY_FAILED, retry_count=12, last_error="HTTP 500: down")
        stats = self.client.get("/fiscal/api/documents/statistics/").json()
        self.assertEqual(stats["total"], 2)
        failed = self.client.get("/fiscal/api/documents/definitively-failed/").json()["documents"]
        self.assertEqual([d["id"] for d in failed], [dead.pk])
        self.assertEqual(failed[0]["last_error"], "HTTP 500: down")

    @patch("fiscal.views_api.RetryOrchestrator")
    def test_recover(self, mock_orchestrator):
        mock_orchestrator.return_value.recover_all.return_value = 3
        response = self.client.post("/fiscal/api/documents/recover/")
        self.assertEqual(response.json(), {"success": True, "dispatched": 3})

    def test_monthly_report(self):
        response = self.client.get("/fiscal/api/documents/report/2025/3/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["count"], 0)
        self.assertEqual(self.client.get("/fiscal/api/documents/report/2025/13/").status_code, 400)


class HealthTests(TestCase):
    def test_missing_configuration_is_critical(self):
        with self.settings(FISCAL_GATEWAY_TOKEN=""):
            data = self.client.get("/fiscal/health/gateway/").json()
        self.assertEqual(data["status"], "CRITICAL")

    @patch("fiscal.services.gateway_client.FiscalGatewayClient.query_status")
    def test_reachable_gateway(self, mock_query):
        mock_query.return_value = ok_response()
        make_document(status=Status.AUTHORIZED, access_key=KEY)
        with self.settings(FISCAL_GATEWAY_TOKEN="token"):
            data = self.client.get("/fiscal/health/gateway/").json()
        self.assertEqual(data["status"], "OK")
        self.assertEqual(data["checks"]["gateway"], "Reachable")
