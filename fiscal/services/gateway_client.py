"""
Tax-authority gateway client: submit, cancel, validate and query fiscal documents.

Every call returns a GatewayResponse. Transport errors, timeouts, non-2xx
responses and unparsable bodies become GatewayResponse(success=False); the
client never raises and never mutates the document.
"""

import logging
from dataclasses import dataclass, field

import requests

from fiscal.exceptions import InvalidDocumentPayload
from fiscal.models import FiscalDocument
from fiscal.services.gateway_base import (
    CANCELLATION_PATH,
    EMISSION_PATH,
    QUERY_PATH,
    VALIDATION_PATH,
    GatewayBaseService,
)
from fiscal.services.gateway_payload import build_cancellation_payload, build_emission_payload
from fiscal.services.http_client import gateway_request

logger = logging.getLogger("fiscal")

AUTHORIZED_STATE = "AUTORIZADO"
REJECTED_STATES = frozenset({"RECHAZADO", "NO_AUTORIZADO", "DEVUELTA", "ERROR", "ERROR_SRI"})


@dataclass(frozen=True)
class GatewayResponse:
    success: bool
    message: str = ""
    authorization_code: str | None = None
    status_code: int | None = None
    gateway_status: str | None = None
    request_payload: dict = field(default_factory=dict)
    response_payload: dict | None = None

    @property
    def is_authorized(self) -> bool:
        """Gateway reports the access key as authorized."""
        return self.success and (
            self.gateway_status == AUTHORIZED_STATE
            or (self.gateway_status is None and bool(self.authorization_code))
        )


def _body_field(body: dict, *names):
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    invoice = data.get("invoice") if isinstance(data.get("invoice"), dict) else {}
    for source in (body, data, invoice):
        for name in names:
            value = source.get(name)
            if value not in (None, ""):
                return value
    return None


def extract_error_message(response: requests.Response, body: dict | None) -> str:
    """message, then mensaje, then error from the body; else HTTP <code>: <body>."""
    if isinstance(body, dict):
        for key in ("message", "mensaje", "error"):
            value = body.get(key)
            if value:
                return str(value)
    return f"HTTP {response.status_code}: {response.text[:1000]}"


class FiscalGatewayClient(GatewayBaseService):
    """Stateless adapter over the gateway HTTP API."""

    def submit(self, document) -> GatewayResponse:
        """POST emitir. The document must already carry its access key."""
        if not document.access_key:
            return GatewayResponse(success=False, message="Document has no access key")
        try:
            request_payload = build_emission_payload(document)
        except InvalidDocumentPayload as e:
            return GatewayResponse(success=False, message=str(e))
        return self._post(EMISSION_PATH, request_payload, retry=False, document_id=document.pk)

    def cancel(self, document, reason: str) -> GatewayResponse:
        """POST anular. Only AUTHORIZED documents can be cancelled."""
        if document.status != FiscalDocument.Status.AUTHORIZED:
            return GatewayResponse(
                success=False,
                message=f"Document {document.pk} is {document.status}; only AUTHORIZED documents can be cancelled",
            )
        request_payload = build_cancellation_payload(document, reason)
        return self._post(CANCELLATION_PATH, request_payload, retry=False, document_id=document.pk)

    def validate_access_key(self, access_key: str) -> GatewayResponse:
        return self._post(VALIDATION_PATH, {"claveAcceso": access_key}, retry=True)

    def query_status(self, access_key: str) -> GatewayResponse:
        return self._post(QUERY_PATH, {"claveAcceso": access_key}, retry=True)

    def _post(self, path: str, request_payload: dict, *, retry: bool, document_id=None) -> GatewayResponse:
        url = self.url(path)
        log_extra = {"document_id": document_id, "access_key": request_payload.get("claveAcceso")}
        try:
            response = gateway_request(
                "POST",
                url,
                json=request_payload,
                headers=self.headers(),
                timeout=self.timeout(),
                retry=retry,
            )
        except requests.Timeout:
            logger.warning("Gateway timeout: POST %s", path, extra=log_extra)
            return GatewayResponse(
                success=False,
                message=f"Gateway timeout after {self.timeout()}s",
                request_payload=request_payload,
            )
        except requests.RequestException as e:
            logger.warning("Gateway transport error: POST %s: %s", path, e, extra=log_extra)
            return GatewayResponse(
                success=False,
                message=f"Gateway transport error: {e}",
                request_payload=request_payload,
            )

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = None

        log_extra["status_code"] = response.status_code
        if not 200 <= response.status_code < 300:
            message = extract_error_message(response, body)
            logger.warning("Gateway rejected POST %s: %s", path, message, extra=log_extra)
            return GatewayResponse(
                success=False,
                message=message,
                status_code=response.status_code,
                request_payload=request_payload,
                response_payload=body or {"raw": response.text[:10000]},
            )
        if body is None:
            logger.warning("Gateway returned unparsable body for POST %s", path, extra=log_extra)
            return GatewayResponse(
                success=False,
                message=f"Unparsable gateway response: {response.text[:500]}",
                status_code=response.status_code,
                request_payload=request_payload,
                response_payload={"raw": response.text[:10000]},
            )

        gateway_status = _body_field(body, "estado")
        success = body.get("success") is True and gateway_status not in REJECTED_STATES
        message = str(_body_field(body, "mensaje", "message", "error") or "")
        if not success and not message:
            message = f"Gateway reported {gateway_status or 'failure'}"
        result = GatewayResponse(
            success=success,
            message=message,
            authorization_code=_body_field(body, "numeroAutorizacion"),
            status_code=response.status_code,
            gateway_status=gateway_status,
            request_payload=request_payload,
            response_payload=body,
        )
        logger.info(
            "Gateway POST %s -> %s (%s)",
            path,
            "ok" if success else "failed",
            gateway_status or response.status_code,
            extra=log_extra,
        )
        return result
