"""Partner progress after submission: shipment and delivery."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from fulfillment.domain import fulfillment
from fulfillment.order.order import Order


@fulfillment.command(part_of="Order")
class RecordShipment:
    order_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=100)


@fulfillment.command(part_of="Order")
class RecordDelivery:
    order_id = Identifier(required=True)


@fulfillment.command_handler(part_of=Order)
class ShippingHandler:
    @handle(RecordShipment)
    def record_shipment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_shipment(command.tracking_number)
        repo.add(order)
        return order.status

    @handle(RecordDelivery)
    def record_delivery(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_delivery()
        repo.add(order)
        return order.status
