import json

import httpx
import pytest

from fulfillment.errors import PartnerError, PartnerUnavailableError
from fulfillment.partner.port import PartnerOrderRequest, Recipient
from fulfillment.partner.prodigi_adapter import ProdigiClient, build_order_payload
from fulfillment.pipeline.retry import RetryPolicy


@pytest.fixture()
def request_():
    return PartnerOrderRequest(
        order_id="TTP-ABC123",
        sku="GLOBAL-FAP-A3",
        asset_url="https://assets.test/print-assets/TTP-ABC123/TTP-ABC123_A3_print.png",
        recipient=Recipient(
            name="Ada Lovelace",
            email="ada@example.com",
            line1="12 Analytical Row",
            line2=None,
            city="London",
            postal_code="N1 9GU",
            country="GB",
        ),
        idempotency_key="TTP-ABC123:print-assets/TTP-ABC123/TTP-ABC123_A3_print.png",
    )


def client_for(handler, sleeps=None):
    return ProdigiClient(
        api_key="prodigi_test",
        base_url="https://api.sandbox.prodigi.test/v4.0",
        retry_policy=RetryPolicy(sleep=(sleeps if sleeps is not None else []).append),
        transport=httpx.MockTransport(handler),
    )


def test_order_payload(request_):
    payload = build_order_payload(request_, "Express")

    assert payload["merchantReference"] == "TTP-ABC123"
    assert payload["shippingMethod"] == "Express"
    assert payload["recipient"]["address"] == {
        "line1": "12 Analytical Row",
        "line2": "",
        "postalOrZipCode": "N1 9GU",
        "countryCode": "GB",
        "townOrCity": "London",
    }
    assert payload["items"] == [
        {
            "merchantReference": "TTP-ABC123-print",
            "sku": "GLOBAL-FAP-A3",
            "copies": 1,
            "assets": [{"printArea": "default", "url": request_.asset_url, "sizing": "fill"}],
        }
    ]
    assert payload["idempotencyKey"] == request_.idempotency_key


def test_submit_returns_partner_order_id(request_):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"outcome": "Created", "order": {"id": "ord_840796"}})

    assert client_for(handler).submit_order(request_) == "ord_840796"
    assert seen[0].url.path == "/v4.0/orders"
    assert seen[0].headers["Authorization"] == "Bearer prodigi_test"
    assert json.loads(seen[0].content)["items"][0]["sku"] == "GLOBAL-FAP-A3"


def test_validation_failure_carries_status_and_body(request_):
    def handler(request):
        return httpx.Response(400, text='{"outcome": "ValidationFailed"}')

    with pytest.raises(PartnerError) as exc:
        client_for(handler).submit_order(request_)

    assert exc.value.status_code == 400
    assert str(exc.value).endswith('Print partner submission failed: 400 - {"outcome": "ValidationFailed"}')
    assert not isinstance(exc.value, PartnerUnavailableError)


def test_server_errors_are_retried(request_):
    responses = [httpx.Response(503, text="unavailable"), httpx.Response(200, json={"order": {"id": "ord_1"}})]
    sleeps = []

    assert client_for(lambda request: responses.pop(0), sleeps).submit_order(request_) == "ord_1"
    assert sleeps == [1.0]


def test_connection_errors_become_partner_unavailable(request_):
    def handler(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(PartnerUnavailableError):
        client_for(handler).submit_order(request_)


def test_response_without_order_id(request_):
    with pytest.raises(PartnerError, match="missing order id"):
        client_for(lambda request: httpx.Response(200, json={"outcome": "Created"})).submit_order(request_)
