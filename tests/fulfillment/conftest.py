import pytest
from protean import current_domain

from fulfillment.order.intake import RecordCheckoutPayment
from fulfillment.order.order import Order, order_id_for_session
from fulfillment.pipeline.collaborators import Collaborators
from fulfillment.preview.preview import RegisterPreview
from fulfillment.services import build_services
from fulfillment.settings import FulfillmentSettings

DEFAULT_SHIPPING = {
    "shipping_name": "Ada Lovelace",
    "shipping_line1": "12 Analytical Row",
    "shipping_line2": "Flat 3",
    "shipping_city": "London",
    "shipping_postal_code": "N1 9GU",
    "shipping_country": "GB",
}


@pytest.fixture()
def collaborators():
    return Collaborators.fakes()


@pytest.fixture()
def settings():
    return FulfillmentSettings(adapters="fake", require_print_approval=True)


@pytest.fixture()
def services(settings, collaborators):
    return build_services(settings, collaborators)


@pytest.fixture()
def orchestrator(services):
    return services.orchestrator


@pytest.fixture()
def register_preview():
    def _register(preview_id="prev-001", image_url="https://previews.example.com/prev-001.png"):
        current_domain.process(
            RegisterPreview(
                preview_id=preview_id,
                image_url=image_url,
                story="A dragon who learned to bake bread",
                style="watercolour",
                refined_prompt="A friendly dragon baking bread, watercolour",
            ),
            asynchronous=False,
        )
        return preview_id

    return _register


@pytest.fixture()
def checkout():
    """Build a RecordCheckoutPayment command with sensible defaults."""

    def _checkout(session_id="cs_test_001", **overrides):
        values = {
            "order_id": order_id_for_session(session_id),
            "session_id": session_id,
            "payment_intent_id": "pi_test_001",
            "amount_total": 5999,
            "currency": "gbp",
            "email": "ada@example.com",
            **DEFAULT_SHIPPING,
            "preview_id": "prev-001",
            "preview_url": "https://previews.example.com/prev-001.png",
            "story": "A dragon who learned to bake bread",
            "style": "watercolour",
            "refined_prompt": "A friendly dragon baking bread, watercolour",
            "print_size": "A3",
        }
        values.update(overrides)
        return RecordCheckoutPayment(**values)

    return _checkout


@pytest.fixture()
def paid_order(register_preview, checkout):
    """Create a PAID order through intake and return its id."""

    def _paid_order(session_id="cs_test_001", **overrides):
        register_preview(overrides.get("preview_id", "prev-001"))
        result = current_domain.process(checkout(session_id, **overrides), asynchronous=False)
        return result.order_id

    return _paid_order


@pytest.fixture()
def load_order():
    def _load(order_id):
        return current_domain.repository_for(Order).get(order_id)

    return _load
