import json

import pytest
from protean import current_domain

from fulfillment.domain import fulfillment
from fulfillment.errors import QuotaExceededError, WebhookSignatureError
from fulfillment.gateway.port import CheckoutSession
from fulfillment.order.order import Order, OrderStatus

SHIPPING = {
    "name": "Ada Lovelace",
    "line1": "12 Analytical Row",
    "line2": None,
    "city": "London",
    "postal_code": "N1 9GU",
    "country": "GB",
}


def checkout_event(session_id, metadata=None, **object_fields):
    return {
        "id": f"evt_{session_id}",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "payment_intent": "pi_receiver",
                "amount_total": 4499,
                "currency": "gbp",
                "customer_details": {"email": "ada@example.com"},
                "metadata": metadata
                if metadata is not None
                else {
                    "previewId": "prev-001",
                    "previewUrl": "https://previews.example.com/prev-001.png",
                    "style": "watercolour",
                    "printSize": "SQUARE_10X10",
                },
                **object_fields,
            }
        },
    }


@pytest.fixture()
def deliver(services, collaborators):
    def _deliver(event, signature=None):
        payload = json.dumps(event).encode()
        signature = signature or collaborators.gateway.sign(payload)
        return services.receiver.receive(payload, signature)

    return _deliver


@pytest.fixture()
def known_session(collaborators):
    def _known(session_id):
        collaborators.gateway.add_session(CheckoutSession(session_id=session_id, shipping=SHIPPING))

    return _known


def test_forged_signature_is_rejected(deliver, collaborators):
    with pytest.raises(WebhookSignatureError):
        deliver(checkout_event("cs_test_forged"), signature="t=1,v1=deadbeef")


def test_checkout_completed_creates_order_and_runs_pipeline(deliver, register_preview, known_session, load_order):
    register_preview()
    known_session("cs_test_recv1")

    receipt = deliver(checkout_event("cs_test_recv1"))

    assert receipt.received is True
    assert receipt.outcome == "created"
    assert receipt.order_id == "TTP-TEST_RECV1"
    assert receipt.status == OrderStatus.AWAITING_APPROVAL.value

    order = load_order("TTP-TEST_RECV1")
    assert order.price == 4499
    assert order.currency == "GBP"
    assert order.sku == "GLOBAL-FAP-10X10"
    assert order.email == "ada@example.com"
    assert order.payment_intent_id == "pi_receiver"


def test_repeated_notification_is_a_duplicate(deliver, register_preview, known_session, collaborators):
    register_preview()
    known_session("cs_test_recv_dup")
    deliver(checkout_event("cs_test_recv_dup"))

    receipt = deliver(checkout_event("cs_test_recv_dup"))

    assert receipt.outcome == "duplicate"
    assert len(collaborators.images.calls) == 1


def test_replay_after_printing_changes_nothing(
    deliver, register_preview, known_session, services, collaborators, load_order
):
    register_preview()
    known_session("cs_test_recv_replay")
    first = deliver(checkout_event("cs_test_recv_replay"))
    services.orchestrator.approve(first.order_id)
    assert load_order(first.order_id).status == OrderStatus.PRINTING.value

    receipt = deliver(checkout_event("cs_test_recv_replay"))

    assert receipt.outcome == "duplicate"
    assert receipt.status == OrderStatus.PRINTING.value
    assert len(current_domain.repository_for(Order).find_by_session("cs_test_recv_replay")) == 1
    assert len(collaborators.images.calls) == 1
    assert len(collaborators.partner.submissions) == 1
    assert load_order(first.order_id).status == OrderStatus.PRINTING.value


def test_missing_metadata_is_acknowledged_as_rejected(deliver, known_session, collaborators):
    known_session("cs_test_recv_meta")

    receipt = deliver(checkout_event("cs_test_recv_meta", metadata={}))

    assert receipt.received is True
    assert receipt.outcome == "rejected"
    assert "metadata" in receipt.errors
    assert collaborators.images.calls == []


def test_missing_shipping_is_rejected(deliver, register_preview):
    register_preview()
    receipt = deliver(checkout_event("cs_test_recv_noship"))
    assert receipt.outcome == "rejected"
    assert "shipping_address" in receipt.errors


def test_redelivery_of_failed_order_reruns_pipeline(
    deliver, register_preview, known_session, collaborators, load_order
):
    register_preview()
    known_session("cs_test_recv_redeliver")
    collaborators.images.fail_with(QuotaExceededError("replicate", "Insufficient credits"))
    first = deliver(checkout_event("cs_test_recv_redeliver"))
    assert first.status == OrderStatus.FAILED.value

    collaborators.images.fail_with(None)
    second = deliver(checkout_event("cs_test_recv_redeliver"))

    assert second.outcome == "redelivered"
    assert second.status == OrderStatus.AWAITING_APPROVAL.value
    assert load_order("TTP-TEST_RECV_REDELIVER").order_metadata["retry_attempt"] == 1


def test_payment_intent_succeeded_is_acknowledged(deliver):
    receipt = deliver({"id": "evt_pi", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}})
    assert receipt.event_type == "payment_intent.succeeded"
    assert receipt.outcome is None


def test_unknown_event_is_ignored(deliver):
    receipt = deliver({"id": "evt_x", "type": "customer.created", "data": {"object": {}}})
    assert receipt.outcome == "ignored"
    assert receipt.received is True


def test_pipeline_crash_is_reported_not_raised(deliver, register_preview, known_session, services, load_order):
    class ExplodingRunner:
        def submit(self, order_id):
            raise RuntimeError("worker lost")

    register_preview()
    known_session("cs_test_recv_crash")
    services.receiver.runner = ExplodingRunner()

    receipt = deliver(checkout_event("cs_test_recv_crash"))

    assert receipt.outcome == "created"
    assert receipt.errors == {"pipeline": ["worker lost"]}
    assert load_order("TTP-TEST_RECV_CRASH").status == OrderStatus.PAID.value


def test_unexpected_intake_failure_is_reported_not_raised(deliver, register_preview, known_session, monkeypatch):
    def unavailable(command, asynchronous=True):
        raise RuntimeError("database unavailable")

    register_preview()
    known_session("cs_test_recv_db")
    monkeypatch.setattr(fulfillment, "process", unavailable)

    receipt = deliver(checkout_event("cs_test_recv_db"))

    assert receipt.received is True
    assert receipt.outcome == "error"
    assert receipt.order_id == "TTP-TEST_RECV_DB"
    assert receipt.errors == {"intake": ["database unavailable"]}
