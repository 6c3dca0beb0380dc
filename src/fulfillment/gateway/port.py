"""Payment gateway port (abstract interface).

The receiver verifies notifications and reads checkout sessions through
this port; refunds go through it too. ``FakePaymentGateway`` serves
development and tests, ``StripeGateway`` production.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CheckoutSession:
    """The parts of a completed checkout session that fulfillment needs."""

    session_id: str
    payment_intent_id: str | None = None
    amount_total: int | None = None  # minor units
    currency: str | None = None
    email: str | None = None
    shipping: dict = field(default_factory=dict)  # name, line1, line2, city, postal_code, country
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    status: str
    amount: int | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    def missing_configuration(self) -> list[str]:
        """Names of settings this adapter needs but does not have."""
        return []

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str) -> dict:
        """Verify a webhook signature and return the parsed event.

        Raises:
            WebhookSignatureError: the signature does not match the payload.
        """
        ...

    @abstractmethod
    def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        """Fetch a checkout session with its customer and shipping details."""
        ...

    @abstractmethod
    def create_refund(self, payment_intent_id: str, order_id: str) -> RefundResult:
        """Refund a payment in full.

        Raises:
            RefundFailedError: the processor rejected the refund.
        """
        ...
