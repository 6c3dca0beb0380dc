"""Configurable fake payment gateway for development and testing.

Signs and verifies webhooks with the same ``t=<ts>,v1=<hmac>`` scheme the
real processor uses, keeps checkout sessions in memory, and can be told to
reject refunds.
"""

import hashlib
import hmac
import json
import time
from uuid import uuid4

from fulfillment.errors import RefundFailedError, WebhookSignatureError
from fulfillment.gateway.port import CheckoutSession, PaymentGateway, RefundResult


class FakePaymentGateway(PaymentGateway):
    def __init__(self, webhook_secret: str = "whsec_test") -> None:
        self.webhook_secret = webhook_secret
        self.sessions: dict[str, CheckoutSession] = {}
        self.should_succeed: bool = True
        self.failure_reason: str = "Refund declined"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Refund declined") -> None:
        """Configure refund behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def add_session(self, session: CheckoutSession) -> None:
        self.sessions[session.session_id] = session

    def sign(self, payload: bytes, timestamp: int | None = None) -> str:
        """Build a signature header for ``payload``."""
        timestamp = int(time.time()) if timestamp is None else timestamp
        signed = f"{timestamp}.".encode() + payload
        digest = hmac.new(self.webhook_secret.encode(), signed, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={digest}"

    def construct_event(self, payload: bytes, signature: str) -> dict:
        self.calls.append({"method": "construct_event"})
        parts = dict(item.split("=", 1) for item in (signature or "").split(",") if "=" in item)
        if "t" not in parts or "v1" not in parts:
            raise WebhookSignatureError("Malformed signature header")
        try:
            timestamp = int(parts["t"])
        except ValueError:
            raise WebhookSignatureError("Malformed signature timestamp") from None

        expected = self.sign(payload, timestamp).split("v1=", 1)[1]
        if not hmac.compare_digest(expected, parts["v1"]):
            raise WebhookSignatureError("Signature does not match payload")
        try:
            return json.loads(payload)
        except ValueError as exc:
            raise WebhookSignatureError(f"Invalid payload: {exc}") from exc

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        self.calls.append({"method": "retrieve_checkout_session", "session_id": session_id})
        session = self.sessions.get(session_id)
        if session is None:
            return CheckoutSession(session_id=session_id)
        return session

    def create_refund(self, payment_intent_id: str, order_id: str) -> RefundResult:
        self.calls.append(
            {
                "method": "create_refund",
                "payment_intent_id": payment_intent_id,
                "order_id": order_id,
            }
        )
        if not self.should_succeed:
            raise RefundFailedError("payment-gateway", self.failure_reason)
        return RefundResult(refund_id=f"re_fake_{uuid4().hex[:12]}", status="succeeded")
