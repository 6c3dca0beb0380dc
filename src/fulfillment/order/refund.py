"""Refunds: return the customer's payment and close the order.

The gateway call happens before the order changes; the order moves to
REFUNDED only once the processor has accepted the refund. An order that is
already refunded is rejected before the gateway is contacted.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from fulfillment.domain import fulfillment
from fulfillment.errors import RefundFailedError
from fulfillment.gateway.port import PaymentGateway, RefundResult
from fulfillment.order.order import Order

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="Order")
class RecordRefund:
    """The payment processor accepted a refund for this order."""

    order_id = Identifier(required=True)
    refund_id = String(required=True, max_length=255)
    payment_intent_id = String(max_length=255)


@fulfillment.command_handler(part_of=Order)
class RefundHandler:
    @handle(RecordRefund)
    def record_refund(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if command.payment_intent_id and not order.payment_intent_id:
            order.payment_intent_id = command.payment_intent_id
        order.refund(command.refund_id)
        repo.add(order)
        return order.status


class RefundService:
    """Issue refunds through the payment gateway and record them."""

    def __init__(self, gateway: PaymentGateway) -> None:
        self.gateway = gateway

    def _resolve_payment_intent(self, order) -> str:
        if order.payment_intent_id:
            return order.payment_intent_id
        if order.payment_session_id:
            session = self.gateway.retrieve_checkout_session(order.payment_session_id)
            if session.payment_intent_id:
                return session.payment_intent_id
        raise RefundFailedError("payment-gateway", f"No payment found for order {order.order_id}")

    def refund(self, order_id: str) -> RefundResult:
        order = current_domain.repository_for(Order).get(order_id)
        order.assert_refundable()

        payment_intent_id = self._resolve_payment_intent(order)
        result = self.gateway.create_refund(payment_intent_id, order_id=order.order_id)
        logger.info(
            "Refund issued",
            order_id=order.order_id,
            refund_id=result.refund_id,
            amount=order.price,
            currency=order.currency,
        )

        current_domain.process(
            RecordRefund(
                order_id=order.order_id,
                refund_id=result.refund_id,
                payment_intent_id=payment_intent_id,
            ),
            asynchronous=False,
        )
        return result
