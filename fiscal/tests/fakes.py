"""Test doubles for the gateway client and the task scheduler."""

from datetime import date

from django.conf import settings

from fiscal.models import FiscalDocument
from fiscal.services.gateway_client import GatewayResponse
from fiscal.services.task_scheduler import TaskScheduler

SAMPLE_PAYLOAD = {
    "buyer": {
        "identification_type": "05",
        "identification": "1712345678",
        "name": "Maria Perez",
        "address": "Av. Amazonas 100",
        "email": "maria@example.com",
        "phone": "0991234567",
    },
    "items": [
        {
            "code": "SKU-1",
            "description": "Backpack",
            "quantity": 2,
            "unit_price": "25.00",
            "discount": "0.00",
            "tax_rate": 15,
            "tax_amount": "7.50",
        }
    ],
    "totals": {"subtotal": "50.00", "discount": "0.00", "tax": "7.50", "tax_rate": 15, "total": "57.50"},
    "currency": "DOLAR",
}


def ok_response(code="AUT-0001") -> GatewayResponse:
    return GatewayResponse(
        success=True,
        message="Factura procesada: AUTORIZADO",
        authorization_code=code,
        status_code=200,
        gateway_status="AUTORIZADO",
        request_payload={"claveAcceso": "x"},
        response_payload={"success": True, "numeroAutorizacion": code},
    )


def failed_response(message="Gateway timeout after 30s") -> GatewayResponse:
    return GatewayResponse(success=False, message=message, request_payload={"claveAcceso": "x"})


class FakeGatewayClient:
    """Returns queued responses for submit(); defaults to `default` when the queue is empty."""

    def __init__(self, responses=None, default=None, status_response=None):
        self.responses = list(responses or [])
        self.default = default or failed_response()
        self.status_response = status_response or failed_response("Not found")
        self.submitted = []
        self.cancelled = []
        self.queried = []

    def submit(self, document):
        self.submitted.append((document.pk, document.retry_count))
        return self.responses.pop(0) if self.responses else self.default

    def cancel(self, document, reason):
        self.cancelled.append((document.pk, reason))
        return self.responses.pop(0) if self.responses else self.default

    def query_status(self, access_key):
        self.queried.append(access_key)
        return self.status_response

    def validate_access_key(self, access_key):
        return self.status_response


class RecordingScheduler(TaskScheduler):
    """Keeps enqueued tasks in memory instead of sending them to a broker."""

    def __init__(self):
        self.tasks = []

    def enqueue(self, task, delay):
        self.tasks.append((task, delay))

    def pop(self):
        return self.tasks.pop(0)


def make_document(**overrides) -> FiscalDocument:
    sequential = overrides.pop("sequential_number", None)
    if sequential is None:
        sequential = FiscalDocument.objects.count() + 1
    fields = {
        "issuer_tax_id": settings.FISCAL_ISSUER_TAX_ID,
        "series": "002001",
        "sequential_number": sequential,
        "issue_date": date(2025, 1, 15),
        "payload": SAMPLE_PAYLOAD,
        "total_amount": "57.50",
    }
    fields.update(overrides)
    return FiscalDocument.objects.create(**fields)
