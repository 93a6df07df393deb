"""Order status updates — command and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.queries import load_order
from ordering.settings import get_settings


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    note = String(max_length=500)


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        order = load_order(command.order_id)
        order.change_status(
            command.status,
            note=command.note,
            on_the_way_eta_minutes=get_settings().on_the_way_eta_minutes,
        )
        current_domain.repository_for(Order).add(order)
        return order.status
