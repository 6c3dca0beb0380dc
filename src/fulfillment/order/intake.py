"""Checkout intake: record a paid checkout exactly once.

The payment processor delivers notifications at least once. The order id is
derived from the checkout session, so a repeated notification finds the
existing order and is either acknowledged as a duplicate or, when the
previous run failed, accepted as a re-delivery that restarts the pipeline.
"""

from dataclasses import dataclass
from enum import Enum

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from fulfillment.catalog import get_product_spec
from fulfillment.domain import fulfillment
from fulfillment.order.order import Order, OrderStatus, order_id_for_session
from fulfillment.preview.preview import Preview

logger = structlog.get_logger(__name__)

REQUIRED_SHIPPING_FIELDS = ("name", "line1", "city", "postal_code", "country")


class IntakeOutcome(Enum):
    CREATED = "created"
    REDELIVERED = "redelivered"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class IntakeResult:
    order_id: str
    outcome: IntakeOutcome
    status: str

    @property
    def should_run_pipeline(self) -> bool:
        return self.outcome in (IntakeOutcome.CREATED, IntakeOutcome.REDELIVERED)


@fulfillment.command(part_of="Order")
class RecordCheckoutPayment:
    """A checkout session completed and was paid."""

    order_id = Identifier()
    session_id = String(required=True, max_length=255)
    payment_intent_id = String(max_length=255)
    amount_total = Integer()  # minor units, absent for zero-amount sessions
    currency = String(max_length=3)
    email = String(max_length=255)

    shipping_name = String(max_length=255)
    shipping_line1 = String(max_length=255)
    shipping_line2 = String(max_length=255)
    shipping_city = String(max_length=100)
    shipping_postal_code = String(max_length=20)
    shipping_country = String(max_length=2)

    preview_id = Identifier()
    preview_url = Text()
    story = Text()
    style = String(max_length=50)
    refined_prompt = Text()
    print_size = String(max_length=20)


def _shipping_from(command) -> dict:
    return {
        "name": command.shipping_name,
        "line1": command.shipping_line1,
        "line2": command.shipping_line2,
        "city": command.shipping_city,
        "postal_code": command.shipping_postal_code,
        "country": (command.shipping_country or "").upper() or None,
    }


def _pipeline_inputs(command) -> dict:
    return {
        "preview_url": command.preview_url,
        "story": command.story,
        "style": command.style,
        "refined_prompt": command.refined_prompt,
    }


def _validate_new_checkout(command) -> dict:
    """Check what a new order needs before anything is written."""
    if not command.preview_id or not command.preview_url:
        raise ValidationError(
            {
                "metadata": [
                    f"Missing required metadata: previewId={bool(command.preview_id)}, "
                    f"previewUrl={bool(command.preview_url)}"
                ]
            }
        )

    shipping = _shipping_from(command)
    missing = [f for f in REQUIRED_SHIPPING_FIELDS if not shipping.get(f)]
    if missing:
        raise ValidationError({"shipping_address": [f"Missing required shipping address fields: {', '.join(missing)}"]})

    try:
        current_domain.repository_for(Preview).get(command.preview_id)
    except ObjectNotFoundError:
        raise ValidationError({"preview_id": [f"Preview {command.preview_id} not found"]}) from None

    return shipping


@fulfillment.command_handler(part_of=Order)
class CheckoutIntakeHandler:
    @handle(RecordCheckoutPayment)
    def record_checkout_payment(self, command) -> IntakeResult:
        order_id = command.order_id or order_id_for_session(command.session_id)
        repo = current_domain.repository_for(Order)

        try:
            existing = repo.get(order_id)
        except ObjectNotFoundError:
            existing = None

        if existing is not None:
            if existing.current_status != OrderStatus.FAILED:
                logger.info("Duplicate payment notification ignored", order_id=order_id, status=existing.status)
                return IntakeResult(order_id, IntakeOutcome.DUPLICATE, existing.status)

            existing.redeliver(_pipeline_inputs(command), payment_intent_id=command.payment_intent_id)
            repo.add(existing)
            logger.info("Failed order re-delivered", order_id=order_id)
            return IntakeResult(order_id, IntakeOutcome.REDELIVERED, existing.status)

        shipping = _validate_new_checkout(command)
        product = get_product_spec(command.print_size)
        price = command.amount_total if command.amount_total is not None else product.retail_price

        order = Order.create_paid(
            order_id=order_id,
            email=command.email or "",
            price=price,
            currency=(command.currency or "GBP").upper(),
            print_size=product.print_size.value,
            sku=product.sku,
            shipping=shipping,
            pipeline_inputs=_pipeline_inputs(command),
            preview_id=command.preview_id,
            payment_session_id=command.session_id,
            payment_intent_id=command.payment_intent_id,
        )
        repo.add(order)
        logger.info("Order created from checkout", order_id=order_id, price=price, print_size=order.print_size)
        return IntakeResult(order_id, IntakeOutcome.CREATED, order.status)
