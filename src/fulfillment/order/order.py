"""Order aggregate: the single authoritative record of a print order.

One Order exists per payment session. Its status is changed only through
the methods below, each of which validates the transition, stamps
``updated_at``, appends to the audit history in ``order_metadata`` and
raises a domain event.

State Machine:
    (none) → PAID → GENERATING → AWAITING_APPROVAL → PRINT_READY → PRINTING
    GENERATING → PRINT_READY (approval not required)
    PRINT_READY → GENERATING → PRINT_READY (regenerate)
    PRINTING → SHIPPED → DELIVERED
    any non-terminal → FAILED → GENERATING (retry / re-delivery)
    any paid, not refunded → REFUNDED
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Dict,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from fulfillment.domain import fulfillment
from fulfillment.order.events import (
    GenerationStarted,
    HDImageGenerated,
    OrderApproved,
    OrderAwaitingApproval,
    OrderDelivered,
    OrderFailed,
    OrderPaid,
    OrderPrintReady,
    OrderRedelivered,
    OrderRefunded,
    OrderRegenerated,
    OrderRetried,
    OrderShipped,
    OrderSubmittedToPartner,
    PartnerSubmissionFailed,
    PrintAssetUploaded,
    RegenerationReverted,
    RegenerationStarted,
)

ORDER_ID_PREFIX = "TTP-"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    GENERATING = "GENERATING"
    PRINT_READY = "PRINT_READY"
    AWAITING_APPROVAL = "AWAITING_APPROVAL"
    PRINTING = "PRINTING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentStatus(Enum):
    PAID = "paid"
    REFUNDED = "refunded"


class PipelineStage(Enum):
    CONFIGURATION = "configuration"
    HD_IMAGE = "hd_image"
    PRINT_FILE = "print_file"
    UPLOAD = "upload"
    PARTNER_SUBMISSION = "partner_submission"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.FAILED, OrderStatus.REFUNDED},
    OrderStatus.PAID: {OrderStatus.GENERATING, OrderStatus.FAILED, OrderStatus.REFUNDED},
    OrderStatus.GENERATING: {
        OrderStatus.AWAITING_APPROVAL,
        OrderStatus.PRINT_READY,
        OrderStatus.FAILED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.AWAITING_APPROVAL: {OrderStatus.PRINT_READY, OrderStatus.FAILED, OrderStatus.REFUNDED},
    OrderStatus.PRINT_READY: {
        OrderStatus.PRINTING,
        OrderStatus.GENERATING,
        OrderStatus.FAILED,
        OrderStatus.REFUNDED,
    },
    OrderStatus.PRINTING: {OrderStatus.SHIPPED, OrderStatus.FAILED, OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.FAILED, OrderStatus.REFUNDED},
    OrderStatus.FAILED: {OrderStatus.GENERATING, OrderStatus.REFUNDED},
    OrderStatus.DELIVERED: {OrderStatus.REFUNDED},
    OrderStatus.REFUNDED: set(),  # terminal
}

# Operator retry may restart from any of these, including a GENERATING
# order left behind by a crashed run.
_RETRYABLE_STATUSES = {
    OrderStatus.PENDING,
    OrderStatus.PAID,
    OrderStatus.GENERATING,
    OrderStatus.PRINT_READY,
    OrderStatus.AWAITING_APPROVAL,
    OrderStatus.PRINTING,
    OrderStatus.SHIPPED,
    OrderStatus.FAILED,
}


def order_id_for_session(session_id: str) -> str:
    """Derive the order id from a checkout session id.

    >>> order_id_for_session("cs_test_a1b2")
    'TTP-TEST_A1B2'
    """
    if not session_id:
        raise ValidationError({"session_id": ["Checkout session id is required"]})
    suffix = session_id[3:] if session_id.startswith("cs_") else session_id
    return f"{ORDER_ID_PREFIX}{suffix.upper()}"


def _now_iso(now: datetime) -> str:
    return now.isoformat()


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@fulfillment.value_object(part_of="Order")
class ShippingAddress:
    """Recipient captured at checkout. Never edited afterwards."""

    name = String(max_length=255)
    line1 = String(max_length=255)
    line2 = String(max_length=255)
    city = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=2)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@fulfillment.aggregate
class Order:
    order_id = Identifier(identifier=True, required=True)
    email = String(max_length=255)
    status = String(
        max_length=30,
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    payment_status = String(
        max_length=20,
        choices=PaymentStatus,
        default=PaymentStatus.PAID.value,
    )
    price = Integer(required=True, min_value=0)  # minor units
    currency = String(max_length=3, default="GBP")
    print_size = String(max_length=20, required=True)
    sku = String(max_length=50, required=True)
    preview_id = Identifier()
    shipping_address = ValueObject(ShippingAddress)
    hd_image_url = Text()
    print_asset_url = Text()
    print_asset_key = String(max_length=500)
    partner_order_id = String(max_length=100)
    tracking_number = String(max_length=100)
    payment_session_id = String(max_length=255)
    payment_intent_id = String(max_length=255)
    order_metadata = Dict()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def price_must_not_be_negative(self):
        if self.price is not None and self.price < 0:
            raise ValidationError({"price": ["Price cannot be negative"]})

    @invariant.post
    def price_is_fixed_once_paid(self):
        paid_amount = (self.order_metadata or {}).get("paid_amount")
        if paid_amount is not None and self.price != paid_amount:
            raise ValidationError({"price": ["Price cannot change once the order is paid"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create_paid(
        cls,
        order_id: str,
        email: str,
        price: int,
        currency: str,
        print_size: str,
        sku: str,
        shipping: dict,
        pipeline_inputs: dict,
        preview_id: str | None = None,
        payment_session_id: str | None = None,
        payment_intent_id: str | None = None,
    ):
        """Record a paid order. The order starts in PAID, ready for the pipeline."""
        now = datetime.now(UTC)
        order = cls(
            order_id=order_id,
            email=email,
            status=OrderStatus.PAID.value,
            payment_status=PaymentStatus.PAID.value,
            price=price,
            currency=(currency or "GBP").upper(),
            print_size=print_size,
            sku=sku,
            preview_id=preview_id,
            shipping_address=ShippingAddress(**shipping),
            payment_session_id=payment_session_id,
            payment_intent_id=payment_intent_id,
            order_metadata={**pipeline_inputs, "print_size": print_size, "paid_amount": price, "history": []},
            created_at=now,
            updated_at=now,
        )
        order._note(now, "paid", f"Payment of {price} {order.currency} recorded")
        order.raise_(
            OrderPaid(
                order_id=order_id,
                email=email,
                price=price,
                currency=order.currency,
                print_size=print_size,
                sku=sku,
                preview_id=preview_id,
                paid_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def history(self) -> list[dict]:
        return list((self.order_metadata or {}).get("history", []))

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = self.current_status
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _update_metadata(self, **values) -> None:
        self.order_metadata = {**(self.order_metadata or {}), **values}

    def _note(self, now: datetime, event: str, detail: str = "") -> None:
        history = self.history
        history.append({"at": _now_iso(now), "event": event, "detail": detail})
        self._update_metadata(history=history)

    def _clear_artifacts(self) -> None:
        self.hd_image_url = None
        self.print_asset_url = None
        self.print_asset_key = None
        self.partner_order_id = None
        self.tracking_number = None

    # -------------------------------------------------------------------
    # Intake and re-entry
    # -------------------------------------------------------------------
    def redeliver(self, pipeline_inputs: dict, payment_intent_id: str | None = None) -> None:
        """Accept a repeated payment notification for a FAILED order.

        Artifacts from the failed run are discarded and the pipeline inputs
        are refreshed from the notification; the status stays FAILED until
        the pipeline restarts.
        """
        if self.current_status != OrderStatus.FAILED:
            raise ValidationError({"status": [f"Order {self.order_id} is {self.status}, not FAILED"]})

        now = datetime.now(UTC)
        attempt = int((self.order_metadata or {}).get("retry_attempt", 0)) + 1
        self._clear_artifacts()
        if payment_intent_id:
            self.payment_intent_id = payment_intent_id
        self._update_metadata(**pipeline_inputs, retry_attempt=attempt, retry_timestamp=_now_iso(now))
        self._note(now, "redelivered", f"Payment notification re-delivered (attempt {attempt})")
        self.updated_at = now
        self.raise_(
            OrderRedelivered(
                order_id=self.order_id,
                retry_attempt=attempt,
                redelivered_at=now,
            )
        )

    def assert_retryable(self) -> None:
        if self.current_status not in _RETRYABLE_STATUSES:
            raise ValidationError({"status": [f"Cannot retry order in {self.status} status"]})

    def reset_for_retry(self, requested_by: str | None = None) -> None:
        """Operator retry: clear every artifact and restart at GENERATING."""
        self.assert_retryable()
        current = self.current_status

        now = datetime.now(UTC)
        attempt = int((self.order_metadata or {}).get("retry_attempt", 0)) + 1
        self._clear_artifacts()
        self.status = OrderStatus.GENERATING.value
        self._update_metadata(
            retry_attempt=attempt,
            retry_timestamp=_now_iso(now),
            retried_by=requested_by,
            last_error=None,
            last_error_at=None,
            failed_stage=None,
        )
        self._note(now, "retried", f"Retry requested from {current.value}")
        self.updated_at = now
        self.raise_(
            OrderRetried(
                order_id=self.order_id,
                previous_status=current.value,
                retried_by=requested_by,
                retried_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Pipeline progress
    # -------------------------------------------------------------------
    def start_generation(self) -> None:
        current = self.current_status
        self._assert_can_transition(OrderStatus.GENERATING)
        now = datetime.now(UTC)
        self.status = OrderStatus.GENERATING.value
        self._note(now, "generation_started", f"Pipeline started from {current.value}")
        self.updated_at = now
        self.raise_(
            GenerationStarted(
                order_id=self.order_id,
                previous_status=current.value,
                started_at=now,
            )
        )

    def _assert_generating(self) -> None:
        if self.current_status != OrderStatus.GENERATING:
            raise ValidationError({"status": [f"Order {self.order_id} is not generating (status {self.status})"]})

    def record_hd_image(self, hd_image_url: str) -> None:
        self._assert_generating()
        now = datetime.now(UTC)
        self.hd_image_url = hd_image_url
        self._note(now, "hd_image_generated")
        self.updated_at = now
        self.raise_(HDImageGenerated(order_id=self.order_id, hd_image_url=hd_image_url, generated_at=now))

    def record_print_asset(self, print_asset_url: str, print_asset_key: str) -> None:
        self._assert_generating()
        now = datetime.now(UTC)
        self.print_asset_url = print_asset_url
        self.print_asset_key = print_asset_key
        self._note(now, "print_asset_uploaded", print_asset_key)
        self.updated_at = now
        self.raise_(
            PrintAssetUploaded(
                order_id=self.order_id,
                print_asset_url=print_asset_url,
                print_asset_key=print_asset_key,
                uploaded_at=now,
            )
        )

    def complete_generation(self, require_approval: bool) -> None:
        """Print assets are ready: hold for approval or mark ready to print."""
        self._assert_generating()
        if not self.print_asset_url:
            raise ValidationError({"print_asset_url": ["Print asset has not been uploaded"]})

        now = datetime.now(UTC)
        if require_approval:
            self._assert_can_transition(OrderStatus.AWAITING_APPROVAL)
            self.status = OrderStatus.AWAITING_APPROVAL.value
            self._note(now, "awaiting_approval")
            self.raise_(
                OrderAwaitingApproval(order_id=self.order_id, print_asset_url=self.print_asset_url, ready_at=now)
            )
        else:
            self._assert_can_transition(OrderStatus.PRINT_READY)
            self.status = OrderStatus.PRINT_READY.value
            self._note(now, "print_ready")
            self.raise_(OrderPrintReady(order_id=self.order_id, print_asset_url=self.print_asset_url, ready_at=now))
        self.updated_at = now

    def approve(self, approved_by: str | None = None) -> None:
        """Operator approval of the print asset.

        Moves AWAITING_APPROVAL to PRINT_READY. A PRINT_READY order that was
        never accepted by the partner can be approved again to resume the
        submission.
        """
        current = self.current_status
        resuming = current == OrderStatus.PRINT_READY and not self.partner_order_id
        if current != OrderStatus.AWAITING_APPROVAL and not resuming:
            raise ValidationError({"status": [f"Order must be AWAITING_APPROVAL to approve (current: {current.value})"]})
        if not self.print_asset_url:
            raise ValidationError({"print_asset_url": ["Order has no print asset to approve"]})

        now = datetime.now(UTC)
        if current == OrderStatus.AWAITING_APPROVAL:
            self._assert_can_transition(OrderStatus.PRINT_READY)
            self.status = OrderStatus.PRINT_READY.value
        self._update_metadata(approved_at=_now_iso(now), approved_by=approved_by)
        self._note(now, "approved", f"Approved by {approved_by or 'operator'}")
        self.updated_at = now
        self.raise_(OrderApproved(order_id=self.order_id, approved_by=approved_by, approved_at=now))

    def record_partner_submission(self, partner_order_id: str) -> None:
        if not partner_order_id:
            raise ValidationError({"partner_order_id": ["Partner order id is required"]})
        self._assert_can_transition(OrderStatus.PRINTING)

        now = datetime.now(UTC)
        self.status = OrderStatus.PRINTING.value
        self.partner_order_id = partner_order_id
        self._update_metadata(partner_submitted_at=_now_iso(now), last_error=None, failed_stage=None)
        self._note(now, "submitted_to_partner", partner_order_id)
        self.updated_at = now
        self.raise_(
            OrderSubmittedToPartner(
                order_id=self.order_id,
                partner_order_id=partner_order_id,
                sku=self.sku,
                submitted_at=now,
            )
        )

    def record_partner_failure(self, error: str) -> None:
        """Partner rejected the order; keep PRINT_READY and the asset."""
        if self.current_status != OrderStatus.PRINT_READY:
            raise ValidationError({"status": ["Partner failures are only recorded on PRINT_READY orders"]})

        now = datetime.now(UTC)
        self._update_metadata(
            last_error=error,
            last_error_at=_now_iso(now),
            failed_stage=PipelineStage.PARTNER_SUBMISSION.value,
        )
        self._note(now, "partner_submission_failed", error)
        self.updated_at = now
        self.raise_(PartnerSubmissionFailed(order_id=self.order_id, error=error, failed_at=now))

    def mark_failed(self, error: str, stage: PipelineStage | str) -> None:
        """Record an unrecoverable pipeline error and move to FAILED.

        An order that is already FAILED keeps its status; only the error
        details are refreshed.
        """
        stage_value = stage.value if isinstance(stage, PipelineStage) else stage
        current = self.current_status
        if current != OrderStatus.FAILED:
            self._assert_can_transition(OrderStatus.FAILED)

        now = datetime.now(UTC)
        self.status = OrderStatus.FAILED.value
        self._update_metadata(last_error=error, last_error_at=_now_iso(now), failed_stage=stage_value)
        self._note(now, "failed", f"{stage_value}: {error}")
        self.updated_at = now
        self.raise_(
            OrderFailed(
                order_id=self.order_id,
                stage=stage_value,
                error=error,
                previous_status=current.value,
                failed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Regeneration
    # -------------------------------------------------------------------
    def begin_regeneration(self, requested_by: str | None = None) -> None:
        if self.current_status != OrderStatus.PRINT_READY:
            raise ValidationError(
                {"status": [f"Order must be PRINT_READY to regenerate (current: {self.current_status.value})"]}
            )
        now = datetime.now(UTC)
        self.status = OrderStatus.GENERATING.value
        self._note(now, "regeneration_started", f"Requested by {requested_by or 'operator'}")
        self.updated_at = now
        self.raise_(RegenerationStarted(order_id=self.order_id, requested_by=requested_by, started_at=now))

    def complete_regeneration(
        self,
        hd_image_url: str,
        print_asset_url: str,
        print_asset_key: str,
        regenerated_by: str | None = None,
    ) -> None:
        """Swap in the new artifacts together and return to PRINT_READY."""
        self._assert_generating()
        now = datetime.now(UTC)
        self.hd_image_url = hd_image_url
        self.print_asset_url = print_asset_url
        self.print_asset_key = print_asset_key
        self.status = OrderStatus.PRINT_READY.value
        self._update_metadata(regenerated_at=_now_iso(now), regenerated_by=regenerated_by)
        self._note(now, "regenerated", print_asset_key)
        self.updated_at = now
        self.raise_(
            OrderRegenerated(
                order_id=self.order_id,
                hd_image_url=hd_image_url,
                print_asset_url=print_asset_url,
                regenerated_by=regenerated_by,
                regenerated_at=now,
            )
        )

    def revert_regeneration(self, error: str) -> None:
        """Regeneration failed: back to PRINT_READY with the previous asset."""
        self._assert_generating()
        now = datetime.now(UTC)
        self.status = OrderStatus.PRINT_READY.value
        self._update_metadata(last_error=error, last_error_at=_now_iso(now), failed_stage="regeneration")
        self._note(now, "regeneration_reverted", error)
        self.updated_at = now
        self.raise_(RegenerationReverted(order_id=self.order_id, error=error, reverted_at=now))

    # -------------------------------------------------------------------
    # Refund
    # -------------------------------------------------------------------
    def assert_refundable(self) -> None:
        if self.current_status == OrderStatus.REFUNDED or self.payment_status == PaymentStatus.REFUNDED.value:
            raise ValidationError({"status": [f"Order {self.order_id} has already been refunded"]})
        if self.payment_status != PaymentStatus.PAID.value:
            raise ValidationError({"payment_status": ["Only paid orders can be refunded"]})

    def refund(self, refund_id: str) -> None:
        self.assert_refundable()
        current = self.current_status
        self._assert_can_transition(OrderStatus.REFUNDED)

        now = datetime.now(UTC)
        self.status = OrderStatus.REFUNDED.value
        self.payment_status = PaymentStatus.REFUNDED.value
        self._update_metadata(refund_id=refund_id, refunded_at=_now_iso(now))
        self._note(now, "refunded", refund_id)
        self.updated_at = now
        self.raise_(
            OrderRefunded(
                order_id=self.order_id,
                refund_id=refund_id,
                amount=self.price,
                currency=self.currency,
                previous_status=current.value,
                refunded_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Partner progress
    # -------------------------------------------------------------------
    def record_shipment(self, tracking_number: str) -> None:
        if not tracking_number:
            raise ValidationError({"tracking_number": ["Tracking number is required"]})
        self._assert_can_transition(OrderStatus.SHIPPED)

        now = datetime.now(UTC)
        self.status = OrderStatus.SHIPPED.value
        self.tracking_number = tracking_number
        self._note(now, "shipped", tracking_number)
        self.updated_at = now
        self.raise_(OrderShipped(order_id=self.order_id, tracking_number=tracking_number, shipped_at=now))

    def record_delivery(self) -> None:
        self._assert_can_transition(OrderStatus.DELIVERED)
        now = datetime.now(UTC)
        self.status = OrderStatus.DELIVERED.value
        self._note(now, "delivered")
        self.updated_at = now
        self.raise_(OrderDelivered(order_id=self.order_id, delivered_at=now))
