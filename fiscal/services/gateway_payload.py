"""
Gateway payload builders. Map the stored business payload of a FiscalDocument
to the tax-authority field names (claveAcceso, ambiente, detalles, ...).
Amounts are sent as strings with two decimals.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings

from fiscal.exceptions import InvalidDocumentPayload

VAT_TAX_CODE = "2"
VAT_RATE_CODES = {
    Decimal("0"): "0",
    Decimal("12"): "2",
    Decimal("14"): "3",
    Decimal("15"): "4",
}
REQUIRED_BUYER_FIELDS = ("identification_type", "identification", "name")
REQUIRED_ITEM_FIELDS = ("code", "description", "quantity", "unit_price")
REQUIRED_TOTAL_FIELDS = ("subtotal", "tax", "total")


def _money(value) -> Decimal:
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidDocumentPayload(f"Invalid amount: {value!r}")


def _fmt(value) -> str:
    return f"{_money(value):.2f}"


def validate_business_payload(payload: dict) -> None:
    """
    Check the business payload has buyer, items and totals before it is stored.
    Raises InvalidDocumentPayload.
    """
    if not isinstance(payload, dict):
        raise InvalidDocumentPayload("Payload must be an object.")
    buyer = payload.get("buyer")
    if not isinstance(buyer, dict):
        raise InvalidDocumentPayload("Payload buyer is required.")
    for field in REQUIRED_BUYER_FIELDS:
        if not buyer.get(field):
            raise InvalidDocumentPayload(f"Buyer {field} is required.")
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise InvalidDocumentPayload("Payload must contain at least one item.")
    for index, item in enumerate(items):
        for field in REQUIRED_ITEM_FIELDS:
            if item.get(field) in (None, ""):
                raise InvalidDocumentPayload(f"Item {index} {field} is required.")
        if _money(item["quantity"]) <= 0:
            raise InvalidDocumentPayload(f"Item {index} quantity must be positive.")
    totals = payload.get("totals")
    if not isinstance(totals, dict):
        raise InvalidDocumentPayload("Payload totals are required.")
    for field in REQUIRED_TOTAL_FIELDS:
        if totals.get(field) in (None, ""):
            raise InvalidDocumentPayload(f"Totals {field} is required.")
        _money(totals[field])


def _vat_rate_code(rate) -> str:
    return VAT_RATE_CODES.get(_money(rate).normalize(), "2")


def _build_item(item: dict) -> dict:
    quantity = _money(item["quantity"])
    unit_price = _money(item["unit_price"])
    discount = _money(item.get("discount") or 0)
    taxable = quantity * unit_price - discount
    tax_rate = item.get("tax_rate", 12)
    return {
        "codigoPrincipal": str(item["code"]),
        "codigoAuxiliar": str(item.get("aux_code") or "SRV"),
        "descripcion": item["description"],
        "cantidad": _fmt(quantity),
        "precioUnitario": _fmt(unit_price),
        "descuento": _fmt(discount),
        "precioTotalSinImpuesto": _fmt(taxable),
        "impuestos": [
            {
                "codigo": VAT_TAX_CODE,
                "codigoPorcentaje": _vat_rate_code(tax_rate),
                "tarifa": str(tax_rate),
                "baseImponible": _fmt(taxable),
                "valor": _fmt(item.get("tax_amount") or 0),
            }
        ],
    }


def build_emission_payload(document) -> dict:
    """Return the emitir request body for a document that has an access key."""
    payload = document.payload or {}
    buyer = payload.get("buyer", {})
    totals = payload.get("totals", {})
    series = document.series
    total_with_taxes = [
        {
            "codigo": VAT_TAX_CODE,
            "codigoPorcentaje": _vat_rate_code(totals.get("tax_rate", 12)),
            "baseImponible": _fmt(totals.get("subtotal", 0)),
            "valor": _fmt(totals.get("tax", 0)),
        }
    ]
    additional_info = [
        {"nombre": "Email", "valor": buyer.get("email") or "N/A"},
        {"nombre": "Telefono", "valor": buyer.get("phone") or "N/A"},
        {"nombre": "Direccion", "valor": buyer.get("address") or "N/A"},
    ]
    if document.order_reference:
        additional_info.append({"nombre": "Pedido", "valor": document.order_reference})

    return {
        "claveAcceso": document.access_key,
        "ambiente": document.environment,
        "tipoEmision": document.emission_type,
        "razonSocial": getattr(settings, "FISCAL_ISSUER_NAME", ""),
        "ruc": document.issuer_tax_id,
        "codDoc": document.document_type,
        "estab": series[:3],
        "ptoEmi": series[3:6],
        "secuencial": f"{document.sequential_number:09d}",
        "dirMatriz": getattr(settings, "FISCAL_ISSUER_ADDRESS", ""),
        "fechaEmision": document.issue_date.strftime("%d/%m/%Y"),
        "tipoIdentificacionComprador": buyer.get("identification_type"),
        "razonSocialComprador": buyer.get("name"),
        "identificacionComprador": buyer.get("identification"),
        "direccionComprador": buyer.get("address") or "",
        "totalSinImpuestos": _fmt(totals.get("subtotal", 0)),
        "totalDescuento": _fmt(totals.get("discount") or 0),
        "totalConImpuestos": total_with_taxes,
        "propina": "0.00",
        "importeTotal": _fmt(totals.get("total", 0)),
        "moneda": payload.get("currency") or getattr(settings, "FISCAL_CURRENCY", "DOLAR"),
        "detalles": [_build_item(item) for item in payload.get("items", [])],
        "infoAdicional": additional_info,
    }


def build_cancellation_payload(document, reason: str) -> dict:
    return {"claveAcceso": document.access_key, "motivo": reason}


def payload_total(payload: dict) -> Decimal:
    return _money((payload.get("totals") or {}).get("total", 0))
