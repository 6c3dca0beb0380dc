"""Repository for the Order aggregate."""

from fulfillment.domain import fulfillment

from .order import Order


@fulfillment.repository(part_of=Order)
class OrderRepository:
    """Order lookups used by the operator console and intake checks."""

    def list_recent(self, status: str | None = None, limit: int = 50) -> list[Order]:
        """Newest orders first, optionally restricted to one status."""
        query = self._dao.query
        if status is not None:
            query = query.filter(status=status)
        return query.order_by("-created_at").limit(limit).all().items

    def find_by_session(self, session_id: str) -> list[Order]:
        return self._dao.query.filter(payment_session_id=session_id).all().items
