"""
Base configuration for the tax-authority gateway.
Provides headers and endpoint URLs for gateway API calls.
"""

from django.conf import settings

EMISSION_PATH = "/api/v1/comprobantes-electronicos/emitir"
CANCELLATION_PATH = "/api/v1/comprobantes-electronicos/anular"
VALIDATION_PATH = "/api/v1/comprobantes-electronicos/validar"
QUERY_PATH = "/api/v1/comprobantes-electronicos/consultar"


class GatewayBaseService:
    """Headers, base URL and timeout required by the gateway API."""

    def base_url(self) -> str:
        return getattr(settings, "FISCAL_GATEWAY_BASE_URL", "").rstrip("/")

    def timeout(self) -> int:
        return int(getattr(settings, "FISCAL_GATEWAY_TIMEOUT", 30))

    def url(self, path: str) -> str:
        return f"{self.base_url()}{path}"

    def headers(self) -> dict[str, str]:
        """
        Return HTTP headers required for gateway requests.

        Returns:
            dict: Bearer Authorization, Content-Type and Accept.
        """
        return {
            "Authorization": f"Bearer {getattr(settings, 'FISCAL_GATEWAY_TOKEN', '')}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
