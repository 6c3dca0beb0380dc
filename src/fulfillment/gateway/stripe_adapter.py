"""Stripe payment gateway adapter.

Uses stripe-python with a per-request API key, so several gateways with
different keys can coexist in one process.
"""

import json

import stripe
import structlog

from fulfillment.errors import (
    CollaboratorError,
    RateLimitedError,
    RefundFailedError,
    TransientCollaboratorError,
    WebhookSignatureError,
)
from fulfillment.gateway.port import CheckoutSession, PaymentGateway, RefundResult
from fulfillment.pipeline.retry import RetryPolicy

logger = structlog.get_logger(__name__)

SERVICE = "stripe"


def _get(obj, key):
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


def _shipping_details(session) -> dict:
    """Shipping name and address, wherever this API version puts them."""
    shipping = (
        _get(_get(session, "collected_information"), "shipping_details")
        or _get(session, "shipping_details")
        or _get(session, "shipping")
        or _get(session, "customer_details")
    )
    address = _get(shipping, "address")
    if not address:
        return {}
    return {
        "name": _get(shipping, "name"),
        "line1": _get(address, "line1"),
        "line2": _get(address, "line2"),
        "city": _get(address, "city"),
        "postal_code": _get(address, "postal_code"),
        "country": _get(address, "country"),
    }


def _translate(exc: stripe.StripeError) -> CollaboratorError:
    message = getattr(exc, "user_message", None) or str(exc)
    if isinstance(exc, stripe.RateLimitError):
        return RateLimitedError(SERVICE, message)
    if isinstance(exc, stripe.APIConnectionError):
        return TransientCollaboratorError(SERVICE, message)
    status = getattr(exc, "http_status", None)
    if status is not None and status >= 500:
        return TransientCollaboratorError(SERVICE, message)
    return CollaboratorError(SERVICE, message)


class StripeGateway(PaymentGateway):
    def __init__(self, api_key: str, webhook_secret: str, retry_policy: RetryPolicy | None = None) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.retry_policy = retry_policy or RetryPolicy()

    def missing_configuration(self) -> list[str]:
        missing = []
        if not self.api_key:
            missing.append("STRIPE_SECRET_KEY")
        if not self.webhook_secret:
            missing.append("STRIPE_WEBHOOK_SECRET")
        return missing

    def construct_event(self, payload: bytes, signature: str) -> dict:
        if not self.webhook_secret:
            raise WebhookSignatureError("Webhook signing secret is not configured")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError(str(exc)) from exc
        except ValueError as exc:
            raise WebhookSignatureError(f"Invalid payload: {exc}") from exc
        return json.loads(payload)

    def _call(self, description: str, fn, *args, **kwargs):
        def attempt():
            try:
                return fn(*args, api_key=self.api_key, **kwargs)
            except stripe.StripeError as exc:
                raise _translate(exc) from exc

        return self.retry_policy.call(attempt, description=description)

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        session = self._call("retrieve checkout session", stripe.checkout.Session.retrieve, session_id)
        customer = _get(session, "customer_details")
        payment_intent = _get(session, "payment_intent")
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = _get(payment_intent, "id")
        return CheckoutSession(
            session_id=session_id,
            payment_intent_id=payment_intent,
            amount_total=_get(session, "amount_total"),
            currency=_get(session, "currency"),
            email=_get(customer, "email") or _get(session, "customer_email"),
            shipping=_shipping_details(session),
            metadata=dict(_get(session, "metadata") or {}),
        )

    def create_refund(self, payment_intent_id: str, order_id: str) -> RefundResult:
        try:
            refund = self._call(
                "create refund",
                stripe.Refund.create,
                payment_intent=payment_intent_id,
                reason="requested_by_customer",
                metadata={"order_id": order_id},
                idempotency_key=f"refund-{order_id}",
            )
        except CollaboratorError as exc:
            raise RefundFailedError(SERVICE, exc.message) from exc
        logger.info("Stripe refund created", order_id=order_id, refund_id=_get(refund, "id"))
        return RefundResult(
            refund_id=_get(refund, "id"),
            status=_get(refund, "status") or "pending",
            amount=_get(refund, "amount"),
        )
