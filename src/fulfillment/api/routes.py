"""FastAPI routes: payment webhook, operator console and preview registry."""

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from fulfillment.api.schemas import (
    ActionResponse,
    OperatorActionRequest,
    OrderDetail,
    OrderListResponse,
    OrderSummary,
    PreviewIdResponse,
    RecordShipmentRequest,
    RegisterPreviewRequest,
    WebhookAckResponse,
)
from fulfillment.errors import CollaboratorError, ConfigurationError, WebhookSignatureError
from fulfillment.order.order import Order, OrderStatus
from fulfillment.order.shipping import RecordDelivery, RecordShipment
from fulfillment.preview.preview import RegisterPreview
from fulfillment.services import FulfillmentServices


def get_services(request: Request) -> FulfillmentServices:
    return request.app.state.fulfillment


def require_admin(
    services: FulfillmentServices = Depends(get_services),
    authorization: str = Header(default=""),
) -> None:
    token = services.settings.admin_api_token
    if token and authorization != f"Bearer {token}":
        raise HTTPException(status_code=401, detail="Unauthorized")


def _operator(body: OperatorActionRequest | None) -> str | None:
    return body.operator if body else None


def _failure(order_id: str, exc: Exception, status_code: int, message: str) -> JSONResponse:
    order = current_domain.repository_for(Order).get(order_id)
    body = ActionResponse(success=False, order_id=order_id, status=order.status, message=message, error=str(exc))
    return JSONResponse(status_code=status_code, content=body.model_dump())


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/stripe", response_model=WebhookAckResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(default=""),
    services: FulfillmentServices = Depends(get_services),
) -> WebhookAckResponse:
    """Receive a payment notification. Acknowledged once the signature is valid."""
    payload = await request.body()
    try:
        receipt = await run_in_threadpool(services.receiver.receive, payload, stripe_signature)
    except WebhookSignatureError as exc:
        raise HTTPException(status_code=401, detail=f"Invalid signature: {exc}") from exc

    return WebhookAckResponse(
        received=receipt.received,
        event_type=receipt.event_type,
        order_id=receipt.order_id,
        outcome=receipt.outcome,
        status=receipt.status,
        errors=receipt.errors,
    )


# ---------------------------------------------------------------------------
# Preview Router
# ---------------------------------------------------------------------------
preview_router = APIRouter(prefix="/previews", tags=["previews"])


@preview_router.post("", status_code=201, response_model=PreviewIdResponse)
def register_preview(body: RegisterPreviewRequest) -> PreviewIdResponse:
    """Record a preview produced by the generation pipeline."""
    command = RegisterPreview(
        preview_id=body.preview_id,
        image_url=body.image_url,
        story=body.story,
        style=body.style,
        refined_prompt=body.refined_prompt,
    )
    result = current_domain.process(command, asynchronous=False)
    return PreviewIdResponse(preview_id=result)


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"], dependencies=[Depends(require_admin)])


@admin_router.get("", response_model=OrderListResponse)
def list_orders(status: OrderStatus | None = None, limit: int = 50) -> OrderListResponse:
    """List orders, newest first, optionally filtered by status."""
    orders = current_domain.repository_for(Order).list_recent(status=status.value if status else None, limit=limit)
    return OrderListResponse(orders=[OrderSummary.from_order(o) for o in orders], count=len(orders))


@admin_router.get("/{order_id}", response_model=OrderDetail)
def get_order(order_id: str) -> OrderDetail:
    order = current_domain.repository_for(Order).get(order_id)
    return OrderDetail.from_order(order)


@admin_router.post("/{order_id}/retry", response_model=ActionResponse)
def retry_order(
    order_id: str,
    body: OperatorActionRequest | None = None,
    services: FulfillmentServices = Depends(get_services),
) -> ActionResponse:
    """Reset the order's artifacts and run the pipeline again."""
    order = services.orchestrator.retry(order_id, requested_by=_operator(body))
    if order.current_status == OrderStatus.FAILED:
        return ActionResponse(
            success=False,
            order_id=order_id,
            status=order.status,
            message="Retry failed",
            error=(order.order_metadata or {}).get("last_error"),
        )
    return ActionResponse(success=True, order_id=order_id, status=order.status, message="Order retried")


@admin_router.post("/{order_id}/regenerate", response_model=ActionResponse)
def regenerate_order(
    order_id: str,
    body: OperatorActionRequest | None = None,
    services: FulfillmentServices = Depends(get_services),
):
    """Replace the HD image and print asset of a PRINT_READY order."""
    try:
        order = services.orchestrator.regenerate(order_id, requested_by=_operator(body))
    except ConfigurationError as exc:
        return _failure(order_id, exc, 503, "Regeneration is not configured")
    except CollaboratorError as exc:
        return _failure(order_id, exc, 502, "Regeneration failed, previous print asset kept")
    return ActionResponse(success=True, order_id=order_id, status=order.status, message="Print asset regenerated")


@admin_router.post("/{order_id}/approve", response_model=ActionResponse)
def approve_order(
    order_id: str,
    body: OperatorActionRequest | None = None,
    services: FulfillmentServices = Depends(get_services),
):
    """Approve the print asset and submit the order to the print partner."""
    try:
        order = services.orchestrator.approve(order_id, approved_by=_operator(body))
    except ConfigurationError as exc:
        return _failure(order_id, exc, 503, "Print partner is not configured")
    except CollaboratorError as exc:
        return _failure(order_id, exc, 502, "Print partner submission failed")
    return ActionResponse(
        success=True,
        order_id=order_id,
        status=order.status,
        message="Order approved and submitted for printing",
        partner_order_id=order.partner_order_id,
    )


@admin_router.post("/{order_id}/refund", response_model=ActionResponse)
def refund_order(
    order_id: str,
    services: FulfillmentServices = Depends(get_services),
):
    """Refund the payment in full and mark the order REFUNDED."""
    try:
        result = services.refunds.refund(order_id)
    except CollaboratorError as exc:
        return _failure(order_id, exc, 502, "Refund failed")
    order = current_domain.repository_for(Order).get(order_id)
    return ActionResponse(
        success=True,
        order_id=order_id,
        status=order.status,
        message="Order refunded",
        refund_id=result.refund_id,
    )


@admin_router.post("/{order_id}/shipment", response_model=ActionResponse)
def record_shipment(order_id: str, body: RecordShipmentRequest) -> ActionResponse:
    """Record that the print partner shipped the order."""
    status = current_domain.process(
        RecordShipment(order_id=order_id, tracking_number=body.tracking_number),
        asynchronous=False,
    )
    return ActionResponse(success=True, order_id=order_id, status=status, message="Shipment recorded")


@admin_router.post("/{order_id}/delivery", response_model=ActionResponse)
def record_delivery(order_id: str) -> ActionResponse:
    status = current_domain.process(RecordDelivery(order_id=order_id), asynchronous=False)
    return ActionResponse(success=True, order_id=order_id, status=status, message="Delivery recorded")
