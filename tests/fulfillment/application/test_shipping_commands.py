import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from fulfillment.order.order import OrderStatus
from fulfillment.order.shipping import RecordDelivery, RecordShipment


@pytest.fixture()
def printing_order(services, paid_order):
    order_id = paid_order("cs_test_shipping")
    services.orchestrator.run(order_id)
    services.orchestrator.approve(order_id)
    return order_id


def test_shipment_then_delivery(printing_order, load_order):
    status = current_domain.process(
        RecordShipment(order_id=printing_order, tracking_number="RM123456789GB"), asynchronous=False
    )
    assert status == OrderStatus.SHIPPED.value

    status = current_domain.process(RecordDelivery(order_id=printing_order), asynchronous=False)
    assert status == OrderStatus.DELIVERED.value

    order = load_order(printing_order)
    assert order.tracking_number == "RM123456789GB"
    assert [entry["event"] for entry in order.history][-2:] == ["shipped", "delivered"]


def test_delivery_before_shipment_is_rejected(printing_order):
    with pytest.raises(ValidationError):
        current_domain.process(RecordDelivery(order_id=printing_order), asynchronous=False)


def test_shipment_of_unsubmitted_order_is_rejected(paid_order):
    order_id = paid_order("cs_test_shipping_early")
    with pytest.raises(ValidationError):
        current_domain.process(RecordShipment(order_id=order_id, tracking_number="TRK"), asynchronous=False)
