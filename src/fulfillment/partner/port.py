"""Print partner port: hands a print-ready asset over for printing and shipping."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Recipient:
    name: str
    email: str
    line1: str
    line2: str | None
    city: str
    postal_code: str
    country: str


@dataclass(frozen=True)
class PartnerOrderRequest:
    order_id: str
    sku: str
    asset_url: str
    recipient: Recipient
    idempotency_key: str | None = None


class PrintPartner(ABC):
    def missing_configuration(self) -> list[str]:
        return []

    @abstractmethod
    def submit_order(self, request: PartnerOrderRequest) -> str:
        """Create the print order and return the partner's order id.

        Raises:
            PartnerError: the partner rejected the order (carries status and body).
        """
        ...
