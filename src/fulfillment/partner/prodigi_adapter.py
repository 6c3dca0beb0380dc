"""Prodigi print partner adapter (v4 orders API)."""

import httpx
import structlog

from fulfillment.errors import PartnerError, PartnerUnavailableError
from fulfillment.partner.port import PartnerOrderRequest, PrintPartner
from fulfillment.pipeline.retry import RetryPolicy

logger = structlog.get_logger(__name__)


def build_order_payload(request: PartnerOrderRequest, shipping_method: str = "Standard") -> dict:
    recipient = request.recipient
    payload = {
        "merchantReference": request.order_id,
        "shippingMethod": shipping_method,
        "recipient": {
            "name": recipient.name,
            "email": recipient.email,
            "address": {
                "line1": recipient.line1,
                "line2": recipient.line2 or "",
                "postalOrZipCode": recipient.postal_code,
                "countryCode": recipient.country,
                "townOrCity": recipient.city,
            },
        },
        "items": [
            {
                "merchantReference": f"{request.order_id}-print",
                "sku": request.sku,
                "copies": 1,
                "assets": [{"printArea": "default", "url": request.asset_url, "sizing": "fill"}],
            }
        ],
    }
    if request.idempotency_key:
        payload["idempotencyKey"] = request.idempotency_key
    return payload


class ProdigiClient(PrintPartner):
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.prodigi.com/v4.0",
        shipping_method: str = "Standard",
        timeout_seconds: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.shipping_method = shipping_method
        self.retry_policy = retry_policy or RetryPolicy()
        self.client = httpx.Client(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        )

    def missing_configuration(self) -> list[str]:
        return [] if self.api_key else ["PRODIGI_API_KEY"]

    def submit_order(self, request: PartnerOrderRequest) -> str:
        payload = build_order_payload(request, self.shipping_method)

        def attempt():
            try:
                response = self.client.post("/orders", json=payload)
            except httpx.TransportError as exc:
                raise PartnerUnavailableError(None, f"{type(exc).__name__}: {exc}") from exc
            if response.status_code == 429 or response.status_code >= 500:
                raise PartnerUnavailableError(response.status_code, response.text[:1000])
            if not response.is_success:
                raise PartnerError(response.status_code, response.text[:1000])
            return response.json()

        body = self.retry_policy.call(attempt, description=f"prodigi create order {request.order_id}")
        partner_order_id = (body.get("order") or {}).get("id")
        if not partner_order_id:
            raise PartnerError(200, f"Response missing order id: {str(body)[:500]}")
        logger.info("Order submitted to Prodigi", order_id=request.order_id, partner_order_id=partner_order_id)
        return partner_order_id
