"""Order payment — commands and handler.

Each handler is a single mark-if-not-already step on the aggregate and
returns whether anything changed, so a replayed confirmation or a webhook
arriving after the client call is a harmless no-op.
"""

from protean import handle
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.order.queries import load_order


@ordering.command(part_of="Order")
class AttachGatewayOrder:
    order_id = Identifier(required=True)
    gateway_order_id = String(required=True, max_length=100)
    amount_minor = Integer(required=True)
    currency = String(required=True, max_length=3)


@ordering.command(part_of="Order")
class ConfirmPayment:
    order_id = Identifier(required=True)
    source = String(required=True, max_length=20)
    gateway_payment_id = String(required=True, max_length=100)
    transaction_id = String(max_length=100)


@ordering.command(part_of="Order")
class FailPayment:
    order_id = Identifier(required=True)
    source = String(required=True, max_length=20)


@ordering.command(part_of="Order")
class RecordRefund:
    order_id = Identifier(required=True)
    refund_id = String(required=True, max_length=100)
    amount = Float()
    reason = String(max_length=500)
    source = String(required=True, max_length=20)


@ordering.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(AttachGatewayOrder)
    def attach_gateway_order(self, command):
        order = load_order(command.order_id)
        order.attach_gateway_order(command.gateway_order_id, command.amount_minor, command.currency)
        current_domain.repository_for(Order).add(order)
        return order.gateway_order_id

    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        order = load_order(command.order_id)
        changed = order.confirm_payment(command.source, command.gateway_payment_id, command.transaction_id)
        if changed:
            current_domain.repository_for(Order).add(order)
        return changed

    @handle(FailPayment)
    def fail_payment(self, command):
        order = load_order(command.order_id)
        changed = order.fail_payment(command.source)
        if changed:
            current_domain.repository_for(Order).add(order)
        return changed

    @handle(RecordRefund)
    def record_refund(self, command):
        order = load_order(command.order_id)
        changed = order.record_refund(command.refund_id, command.amount, command.reason, command.source)
        if changed:
            current_domain.repository_for(Order).add(order)
        return changed
