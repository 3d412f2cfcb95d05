"""Tests for FiscalGatewayClient. HTTP is patched at gateway_request."""

from unittest.mock import MagicMock, patch

import requests
from django.test import TestCase, override_settings

from fiscal.models import FiscalDocument
from fiscal.services.gateway_client import FiscalGatewayClient
from fiscal.tests.fakes import make_document

KEY = "1501202501179001234500110010010000000011234567811"


def _response(status_code=200, body=None, text=None):
    resp = MagicMock()
    resp.status_code = status_code
    if body is None and text is None:
        resp.content = b""
        resp.text = ""
    elif body is not None:
        resp.content = b"{...}"
        resp.text = str(body)
        resp.json.return_value = body
    else:
        resp.content = text.encode()
        resp.text = text
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    return resp


@override_settings(FISCAL_GATEWAY_BASE_URL="https://gateway.test", FISCAL_GATEWAY_TOKEN="secret-token")
class SubmitTests(TestCase):
    def setUp(self):
        self.document = make_document(access_key=KEY, status=FiscalDocument.Status.SENT)
        self.client_ = FiscalGatewayClient()

    @patch("fiscal.services.gateway_client.gateway_request")
    def test_success(self, mock_request):
        mock_request.return_value = _response(200, {
            "success": True,
            "mensaje": "Factura procesada: AUTORIZADO",
            "numeroAutorizacion": "AUT-123",
            "data": {"estado": "AUTORIZADO", "claveAcceso": KEY},
        })
        result = self.client_.submit(self.document)
        self.assertTrue(result.success)
        self.assertEqual(result.authorization_code, "AUT-123")
        self.assertEqual(result.gateway_status, "AUTORIZADO")
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ("POST", "https://gateway.test/api/v1/comprobantes-electronicos/emitir"))
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer secret-token")
        self.assertFalse(kwargs["retry"])
        self.assertEqual(kwargs["json"]["claveAcceso"], KEY)
        self.assertEqual(kwargs["json"]["secuencial"], f"{self.document.sequential_number:09d}")
        self.assertEqual(kwargs["json"]["importeTotal"], "57.50")

    @patch("fiscal.services.gateway_client.gateway_request")
    def test_timeout_becomes_failure(self, mock_request):
        mock_request.side_effect = requests.Timeout("read timed out")
        result = self.client_.submit(self.document)
        self.assertFalse(result.success)
        self.assertIn("timeout", result.message.lower())
        self.assertIsNone(result.status_code)

    @patch("fiscal.services.gateway_client.gateway_request")
    def test_connection_error_becomes_failure(self, mock_request):
        mock_request.side_effect = requests.ConnectionError("refused")
        result = self.client_.submit(self.document)
        self.assertFalse(result.success)
        self.assertIn("refused", result.message)

    @patch("fiscal.services.gateway_client.gateway_request")
    def test_http_error_message_from_body(self, mock_request):
        mock_request.return_value = _response(422, {"message": "RUC no autorizado"})
        result = self.client_.submit(self.document)
        self.assertFalse(result.success)
        self.assertEqual(result.message, "RUC no autorizado")
        self.assertEqual(result.status_code, 422)

    @patch("fiscal.services.gateway_client.gateway_request")
    def test_http_error_falls_back_to_status_and_body(self, mock_request):
        mock_request.return_value = _response(500, text="Internal Server Error")
        result = self.client_.submit(self.document)
        self.assertFalse(result.success)
        self.assertEqual(result.message, "HTTP 500: Internal Server Error")

    @patch("fiscal.services.gateway_client.gateway_request")
    def test_unparsable_body_is_failure(self, mock_request):
        mock_request.return_value = _response(200, text="<html>maintenance</html>")
        result = self.client_.submit(self.document)
        self.assertFalse(result.success)
        self.assertIn("Unparsable", result.message)

    @patch("fiscal.services.gateway_client.gateway_request")
    def test_rejected_state_is_failure(self, mock_request):
        mock_request.return_value = _response(200, {
            "success": True,
            "data": {"estado": "RECHAZADO"},
            "message": "Comprobante rechazado",
        })
        result = self.client_.submit(self.document)
        self.assertFalse(result.success)
        self.assertEqual(result.gateway_status, "RECHAZADO")

    @patch("fiscal.services.gateway_client.gateway_request")
    def test_missing_access_key_not_sent(self, mock_request):
        document = make_document()
        result = self.client_.submit(document)
        self.assertFalse(result.success)
        mock_request.assert_not_called()


@override_settings(FISCAL_GATEWAY_BASE_URL="https://gateway.test", FISCAL_GATEWAY_TOKEN="secret-token")
class CancelAndQueryTests(TestCase):
    @patch("fiscal.services.gateway_client.gateway_request")
    def test_cancel_requires_authorized(self, mock_request):
        document = make_document(access_key=KEY, status=FiscalDocument.Status.FAILED)
        result = FiscalGatewayClient().cancel(document, "Customer returned goods")
        self.assertFalse(result.success)
        mock_request.assert_not_called()

    @patch("fiscal.services.gateway_client.gateway_request")
    def test_cancel_refused_for_already_cancelled(self, mock_request):
        document = make_document(access_key=KEY, status=FiscalDocument.Status.CANCELLED)
        result = FiscalGatewayClient().cancel(document, "Second attempt")
        self.assertFalse(result.success)
        self.assertIn("CANCELLED", result.message)
        mock_request.assert_not_called()

    @patch("fiscal.services.gateway_client.gateway_request")
    def test_cancel_posts_reason(self, mock_request):
        mock_request.return_value = _response(200, {"success": True, "mensaje": "Anulado"})
        document = make_document(access_key=KEY, status=FiscalDocument.Status.AUTHORIZED)
        result = FiscalGatewayClient().cancel(document, "Customer returned goods")
        self.assertTrue(result.success)
        args, kwargs = mock_request.call_args
        self.assertTrue(args[1].endswith("/anular"))
        self.assertEqual(kwargs["json"], {"claveAcceso": KEY, "motivo": "Customer returned goods"})

    @patch("fiscal.services.gateway_client.gateway_request")
    def test_query_status_uses_retrying_session(self, mock_request):
        mock_request.return_value = _response(200, {"success": True, "estado": "AUTORIZADO", "numeroAutorizacion": "AUT-7"})
        result = FiscalGatewayClient().query_status(KEY)
        self.assertTrue(result.is_authorized)
        self.assertTrue(mock_request.call_args.kwargs["retry"])
        self.assertTrue(mock_request.call_args.args[1].endswith("/consultar"))

    @patch("fiscal.services.gateway_client.gateway_request")
    def test_query_status_pending_is_not_authorized(self, mock_request):
        mock_request.return_value = _response(200, {"success": True, "estado": "PROCESANDO"})
        result = FiscalGatewayClient().query_status(KEY)
        self.assertTrue(result.success)
        self.assertFalse(result.is_authorized)
