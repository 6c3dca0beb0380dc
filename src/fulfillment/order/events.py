"""Order domain events: immutable facts about an order's fulfillment.

Every status change and operator action raises one of these. They are past
tense, versioned, and carry enough context to rebuild an audit timeline.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="Order")
class OrderPaid:
    """A checkout completed and the order was recorded."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    email = String()
    price = Integer(required=True)
    currency = String(max_length=3, required=True)
    print_size = String(required=True)
    sku = String(required=True)
    preview_id = Identifier()
    paid_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderRedelivered:
    """A payment notification arrived again for a failed order."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    retry_attempt = Integer(required=True)
    redelivered_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class GenerationStarted:
    __version__ = "v1"

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    started_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class HDImageGenerated:
    __version__ = "v1"

    order_id = Identifier(required=True)
    hd_image_url = String(required=True)
    generated_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class PrintAssetUploaded:
    __version__ = "v1"

    order_id = Identifier(required=True)
    print_asset_url = Text(required=True)
    print_asset_key = String(required=True)
    uploaded_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderAwaitingApproval:
    """Print assets are ready and an operator must approve them."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    print_asset_url = Text(required=True)
    ready_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderApproved:
    __version__ = "v1"

    order_id = Identifier(required=True)
    approved_by = String()
    approved_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderPrintReady:
    __version__ = "v1"

    order_id = Identifier(required=True)
    print_asset_url = Text(required=True)
    ready_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderSubmittedToPartner:
    __version__ = "v1"

    order_id = Identifier(required=True)
    partner_order_id = String(required=True)
    sku = String(required=True)
    submitted_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class PartnerSubmissionFailed:
    """The partner rejected the order; the print asset is kept for approval."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    error = Text(required=True)
    failed_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderFailed:
    __version__ = "v1"

    order_id = Identifier(required=True)
    stage = String(required=True)
    error = Text(required=True)
    previous_status = String(required=True)
    failed_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderRetried:
    """An operator reset the order and re-entered the pipeline."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    retried_by = String()
    retried_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class RegenerationStarted:
    __version__ = "v1"

    order_id = Identifier(required=True)
    requested_by = String()
    started_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderRegenerated:
    """New HD image and print asset replaced the previous ones."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    hd_image_url = String(required=True)
    print_asset_url = Text(required=True)
    regenerated_by = String()
    regenerated_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class RegenerationReverted:
    """Regeneration failed; the previous print asset remains in use."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    error = Text(required=True)
    reverted_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderRefunded:
    __version__ = "v1"

    order_id = Identifier(required=True)
    refund_id = String(required=True)
    amount = Integer(required=True)
    currency = String(max_length=3, required=True)
    previous_status = String(required=True)
    refunded_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderShipped:
    __version__ = "v1"

    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    shipped_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderDelivered:
    __version__ = "v1"

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)
