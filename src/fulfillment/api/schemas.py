"""Pydantic request/response schemas for the fulfillment API.

These are external contracts, kept separate from the Protean commands and
the Order aggregate.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from fulfillment.catalog import format_minor_units


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class RegisterPreviewRequest(BaseModel):
    preview_id: str
    image_url: str
    story: str | None = None
    style: str | None = None
    refined_prompt: str | None = None


class OperatorActionRequest(BaseModel):
    operator: str | None = None


class RecordShipmentRequest(BaseModel):
    tracking_number: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class WebhookAckResponse(BaseModel):
    received: bool = True
    event_type: str | None = None
    order_id: str | None = None
    outcome: str | None = None
    status: str | None = None
    errors: dict = Field(default_factory=dict)


class PreviewIdResponse(BaseModel):
    preview_id: str


class ShippingAddressSchema(BaseModel):
    name: str | None = None
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None


class OrderSummary(BaseModel):
    order_id: str
    email: str | None = None
    status: str
    payment_status: str | None = None
    price: int
    currency: str
    price_display: str
    print_size: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "OrderSummary":
        return cls(
            order_id=order.order_id,
            email=order.email,
            status=order.status,
            payment_status=order.payment_status,
            price=order.price,
            currency=order.currency,
            price_display=format_minor_units(order.price, order.currency),
            print_size=order.print_size,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderDetail(OrderSummary):
    sku: str | None = None
    preview_id: str | None = None
    shipping_address: ShippingAddressSchema | None = None
    hd_image_url: str | None = None
    print_asset_url: str | None = None
    print_asset_key: str | None = None
    partner_order_id: str | None = None
    tracking_number: str | None = None
    payment_session_id: str | None = None
    payment_intent_id: str | None = None
    metadata: dict = Field(default_factory=dict)

    @classmethod
    def from_order(cls, order) -> "OrderDetail":
        address = order.shipping_address
        return cls(
            **OrderSummary.from_order(order).model_dump(),
            sku=order.sku,
            preview_id=order.preview_id,
            shipping_address=ShippingAddressSchema(
                name=address.name,
                line1=address.line1,
                line2=address.line2,
                city=address.city,
                postal_code=address.postal_code,
                country=address.country,
            )
            if address
            else None,
            hd_image_url=order.hd_image_url,
            print_asset_url=order.print_asset_url,
            print_asset_key=order.print_asset_key,
            partner_order_id=order.partner_order_id,
            tracking_number=order.tracking_number,
            payment_session_id=order.payment_session_id,
            payment_intent_id=order.payment_intent_id,
            metadata=dict(order.order_metadata or {}),
        )


class OrderListResponse(BaseModel):
    orders: list[OrderSummary]
    count: int


class ActionResponse(BaseModel):
    success: bool
    order_id: str
    status: str | None = None
    message: str
    error: str | None = None
    partner_order_id: str | None = None
    refund_id: str | None = None
