"""Payment notification receiver.

Authenticates a webhook, turns a completed checkout into a
``RecordCheckoutPayment`` command and, for new or re-delivered orders,
hands the order to the pipeline runner. Once the signature is valid the
notification is always acknowledged; intake and pipeline failures are
reported in the receipt and on the order, never as an HTTP error that
would make the processor re-deliver.
"""

from dataclasses import dataclass, field

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from fulfillment.errors import CollaboratorError
from fulfillment.gateway.port import CheckoutSession, PaymentGateway
from fulfillment.order.intake import IntakeResult, RecordCheckoutPayment
from fulfillment.order.order import order_id_for_session
from fulfillment.pipeline.runner import PipelineRunner

logger = structlog.get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_SUCCEEDED = "payment_intent.succeeded"


@dataclass
class WebhookReceipt:
    event_type: str | None
    received: bool = True
    order_id: str | None = None
    outcome: str | None = None
    status: str | None = None
    errors: dict = field(default_factory=dict)


def _merge_session(session: CheckoutSession, event_object: dict) -> CheckoutSession:
    """Fill gaps in the retrieved session from the copy embedded in the event."""
    return CheckoutSession(
        session_id=session.session_id,
        payment_intent_id=session.payment_intent_id or event_object.get("payment_intent"),
        amount_total=session.amount_total if session.amount_total is not None else event_object.get("amount_total"),
        currency=session.currency or event_object.get("currency"),
        email=session.email
        or (event_object.get("customer_details") or {}).get("email")
        or event_object.get("customer_email"),
        shipping=session.shipping,
        metadata=session.metadata or event_object.get("metadata") or {},
    )


def checkout_command(session: CheckoutSession) -> RecordCheckoutPayment:
    metadata = session.metadata or {}
    shipping = session.shipping or {}
    return RecordCheckoutPayment(
        order_id=order_id_for_session(session.session_id),
        session_id=session.session_id,
        payment_intent_id=session.payment_intent_id,
        amount_total=session.amount_total,
        currency=(session.currency or "GBP").upper(),
        email=session.email or "",
        shipping_name=shipping.get("name"),
        shipping_line1=shipping.get("line1"),
        shipping_line2=shipping.get("line2"),
        shipping_city=shipping.get("city"),
        shipping_postal_code=shipping.get("postal_code"),
        shipping_country=shipping.get("country"),
        preview_id=metadata.get("previewId"),
        preview_url=metadata.get("previewUrl"),
        story=metadata.get("story"),
        style=metadata.get("style"),
        refined_prompt=metadata.get("refinedPrompt"),
        print_size=metadata.get("printSize"),
    )


class PaymentNotificationReceiver:
    def __init__(self, gateway: PaymentGateway, runner: PipelineRunner) -> None:
        self.gateway = gateway
        self.runner = runner

    def receive(self, payload: bytes, signature: str) -> WebhookReceipt:
        """Verify and handle one notification.

        Raises:
            WebhookSignatureError: the notification is not authentic.
        """
        event = self.gateway.construct_event(payload, signature)
        event_type = event.get("type")
        logger.info("Payment notification received", event_type=event_type, event_id=event.get("id"))

        if event_type == CHECKOUT_COMPLETED:
            return self._checkout_completed(event)
        if event_type == PAYMENT_SUCCEEDED:
            payment_intent = (event.get("data") or {}).get("object") or {}
            logger.info("Payment intent succeeded", payment_intent_id=payment_intent.get("id"))
            return WebhookReceipt(event_type=event_type)

        logger.debug("Unhandled payment notification", event_type=event_type)
        return WebhookReceipt(event_type=event_type, outcome="ignored")

    def _checkout_completed(self, event: dict) -> WebhookReceipt:
        event_object = (event.get("data") or {}).get("object") or {}
        session_id = event_object.get("id")
        receipt = WebhookReceipt(event_type=CHECKOUT_COMPLETED)

        try:
            receipt.order_id = order_id_for_session(session_id)
            session = _merge_session(self.gateway.retrieve_checkout_session(session_id), event_object)
            result: IntakeResult = current_domain.process(checkout_command(session), asynchronous=False)
        except ValidationError as exc:
            logger.warning("Checkout rejected at intake", session_id=session_id, errors=exc.messages)
            receipt.outcome = "rejected"
            receipt.errors = exc.messages
            return receipt
        except CollaboratorError as exc:
            logger.error("Could not read checkout session", session_id=session_id, error=str(exc))
            receipt.outcome = "error"
            receipt.errors = {"session": [str(exc)]}
            return receipt
        except Exception as exc:
            logger.exception("Checkout intake failed", session_id=session_id)
            receipt.outcome = "error"
            receipt.errors = {"intake": [str(exc)]}
            return receipt

        receipt.outcome = result.outcome.value
        receipt.status = result.status
        if not result.should_run_pipeline:
            return receipt

        try:
            order = self.runner.submit(result.order_id)
        except Exception as exc:
            logger.exception("Pipeline run aborted", order_id=result.order_id)
            receipt.errors = {"pipeline": [str(exc)]}
            return receipt

        if order is not None:
            receipt.status = order.status
        return receipt
