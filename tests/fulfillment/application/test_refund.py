import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from fulfillment.errors import RefundFailedError
from fulfillment.gateway.port import CheckoutSession
from fulfillment.order.order import OrderStatus, PaymentStatus
from fulfillment.order.shipping import RecordDelivery, RecordShipment


def _refund_calls(gateway):
    return [call for call in gateway.calls if call["method"] == "create_refund"]


def test_refund_paid_order(services, paid_order, load_order, collaborators):
    order_id = paid_order("cs_test_refund")

    result = services.refunds.refund(order_id)

    order = load_order(order_id)
    assert result.refund_id.startswith("re_fake_")
    assert order.status == OrderStatus.REFUNDED.value
    assert order.payment_status == PaymentStatus.REFUNDED.value
    assert order.order_metadata["refund_id"] == result.refund_id
    assert _refund_calls(collaborators.gateway) == [
        {"method": "create_refund", "payment_intent_id": "pi_test_001", "order_id": order_id}
    ]


def test_second_refund_is_rejected_before_the_gateway(services, paid_order, collaborators):
    order_id = paid_order("cs_test_refund_twice")
    services.refunds.refund(order_id)

    with pytest.raises(ValidationError) as exc:
        services.refunds.refund(order_id)

    assert "already been refunded" in exc.value.messages["status"][0]
    assert len(_refund_calls(collaborators.gateway)) == 1


def test_refund_twice_while_printing(services, paid_order, collaborators, load_order):
    order_id = paid_order("cs_test_refund_printing")
    services.orchestrator.run(order_id)
    services.orchestrator.approve(order_id)
    assert load_order(order_id).status == OrderStatus.PRINTING.value

    result = services.refunds.refund(order_id)
    with pytest.raises(ValidationError):
        services.refunds.refund(order_id)

    order = load_order(order_id)
    assert order.status == OrderStatus.REFUNDED.value
    assert order.order_metadata["refund_id"] == result.refund_id
    assert len(_refund_calls(collaborators.gateway)) == 1


def test_refund_after_delivery(services, paid_order, load_order):
    order_id = paid_order("cs_test_refund_delivered")
    services.orchestrator.run(order_id)
    services.orchestrator.approve(order_id)
    current_domain.process(RecordShipment(order_id=order_id, tracking_number="TRK-1"), asynchronous=False)
    current_domain.process(RecordDelivery(order_id=order_id), asynchronous=False)

    services.refunds.refund(order_id)

    order = load_order(order_id)
    assert order.status == OrderStatus.REFUNDED.value
    assert order.tracking_number == "TRK-1"


def test_payment_intent_resolved_from_checkout_session(services, paid_order, collaborators, load_order):
    order_id = paid_order("cs_test_refund_session", payment_intent_id=None)
    collaborators.gateway.add_session(
        CheckoutSession(session_id="cs_test_refund_session", payment_intent_id="pi_from_session")
    )

    services.refunds.refund(order_id)

    assert _refund_calls(collaborators.gateway)[0]["payment_intent_id"] == "pi_from_session"
    assert load_order(order_id).payment_intent_id == "pi_from_session"


def test_refund_without_any_payment_reference(services, paid_order, load_order):
    order_id = paid_order("cs_test_refund_nopayment", payment_intent_id=None)

    with pytest.raises(RefundFailedError):
        services.refunds.refund(order_id)
    assert load_order(order_id).status == OrderStatus.PAID.value


def test_declined_refund_leaves_order_unchanged(services, paid_order, collaborators, load_order):
    order_id = paid_order("cs_test_refund_declined")
    collaborators.gateway.configure(should_succeed=False, failure_reason="charge_already_refunded")

    with pytest.raises(RefundFailedError, match="charge_already_refunded"):
        services.refunds.refund(order_id)

    order = load_order(order_id)
    assert order.status == OrderStatus.PAID.value
    assert order.payment_status == PaymentStatus.PAID.value
