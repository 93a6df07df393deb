"""Payment reconciliation.

Two paths report the same payment: the browser posts a signed confirmation
right after checkout, and the provider later delivers a signed webhook. They
can arrive in either order, twice, or concurrently. Both funnel into the same
per-order locked, mark-if-not-already command, so whichever lands first
changes the order and the other is a no-op.

Webhooks for orders we do not know, and event types we do not handle, are
acknowledged and logged so the provider stops redelivering them.
"""

import json

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.errors import Conflict, Forbidden, GatewayError, InvalidSignature, NotFound
from ordering.order.order import Order, OrderStatus, PaymentSource, PaymentStatus
from ordering.order.payment import AttachGatewayOrder, ConfirmPayment, FailPayment, RecordRefund
from ordering.order.queries import find_by_gateway_order, find_by_gateway_payment, load_order
from ordering.payment import signature
from ordering.payment.gateway.port import PaymentGateway
from ordering.principal import Permission, Principal
from ordering.realtime.notifier import OrderNotifier
from ordering.settings import Settings
from ordering.utils.locks import KeyedLocks, order_key
from ordering.utils.money import quantize, to_decimal, to_minor_units

logger = structlog.get_logger(__name__)

PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"
REFUND_PROCESSED = "refund.processed"


def _entity(payload: dict, kind: str) -> dict:
    return ((payload.get("payload") or {}).get(kind) or {}).get("entity") or {}


class PaymentReconciler:
    def __init__(self, gateway: PaymentGateway, notifier: OrderNotifier, locks: KeyedLocks, settings: Settings):
        self.gateway = gateway
        self.notifier = notifier
        self.locks = locks
        self.settings = settings

    # -------------------------------------------------------------------
    # Gateway orders
    # -------------------------------------------------------------------
    def create_gateway_order(self, principal: Principal, order_id) -> dict:
        """Open (or reuse) the provider order the customer pays against."""
        with self.locks.hold(order_key(order_id)):
            order = load_order(order_id)
            if order.customer_id and not principal.owns(order.customer_id):
                raise Forbidden("Only the customer who placed the order can pay for it")
            if PaymentStatus(order.payment_status) in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
                raise Conflict("Order is already paid")
            if order.status == OrderStatus.CANCELLED.value:
                raise Conflict("Order is cancelled")

            amount_minor = to_minor_units(order.total)
            if order.gateway_order_id:
                gateway_order_id = order.gateway_order_id
                logger.info("gateway_order_reused", order_id=str(order.id), gateway_order_id=gateway_order_id)
            else:
                try:
                    created = self.gateway.create_order(amount_minor, self.settings.currency, order.order_number)
                except GatewayError:
                    logger.error("gateway_order_failed", order_id=str(order.id), exc_info=True)
                    raise
                gateway_order_id = created.gateway_order_id
                current_domain.process(
                    AttachGatewayOrder(
                        order_id=str(order.id),
                        gateway_order_id=gateway_order_id,
                        amount_minor=amount_minor,
                        currency=self.settings.currency,
                    ),
                    asynchronous=False,
                )
                logger.info("gateway_order_created", order_id=str(order.id), gateway_order_id=gateway_order_id)

        return {
            "order_id": str(order.id),
            "order_number": order.order_number,
            "gateway_order_id": gateway_order_id,
            "amount": amount_minor,
            "currency": self.settings.currency,
            "key_id": self.settings.gateway_key_id,
        }

    # -------------------------------------------------------------------
    # Client confirmation
    # -------------------------------------------------------------------
    def verify_client_payment(self, gateway_order_id: str, gateway_payment_id: str, provided_signature: str) -> Order:
        expected = signature.payment_signature(self.settings.gateway_key_secret, gateway_order_id, gateway_payment_id)
        if not signature.matches(expected, provided_signature):
            logger.warning(
                "payment_signature_mismatch",
                gateway_order_id=gateway_order_id,
                gateway_payment_id=gateway_payment_id,
                path="client",
            )
            raise InvalidSignature("Payment signature verification failed")

        order = find_by_gateway_order(gateway_order_id)
        if order is None:
            raise NotFound(f"No order for gateway order {gateway_order_id}")

        return self._confirm(order.id, PaymentSource.CLIENT, gateway_payment_id)

    # -------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------
    def handle_webhook(self, raw_body: bytes, provided_signature: str | None) -> dict:
        """Verify and apply one provider webhook. Returns an acknowledgement."""
        expected = signature.sign(self.settings.webhook_secret, raw_body)
        if not signature.matches(expected, provided_signature):
            logger.warning("payment_signature_mismatch", path="webhook")
            raise InvalidSignature("Webhook signature verification failed")

        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise ValidationError({"body": ["Webhook body is not valid JSON"]})
        if not isinstance(payload, dict):
            raise ValidationError({"body": ["Webhook body must be a JSON object"]})

        event = payload.get("event")
        if event == PAYMENT_CAPTURED:
            return self._on_captured(_entity(payload, "payment"))
        if event == PAYMENT_FAILED:
            return self._on_failed(_entity(payload, "payment"))
        if event == REFUND_PROCESSED:
            return self._on_refunded(_entity(payload, "refund"))

        logger.info("webhook_ignored", webhook_event=event, reason="unhandled event type")
        return {"status": "ok", "event": event, "applied": False}

    def _on_captured(self, entity: dict) -> dict:
        order = find_by_gateway_order(entity.get("order_id"))
        if order is None:
            logger.warning("webhook_ignored", webhook_event=PAYMENT_CAPTURED, gateway_order_id=entity.get("order_id"))
            return {"status": "ok", "event": PAYMENT_CAPTURED, "applied": False}

        before = order.payment_status
        order = self._confirm(order.id, PaymentSource.WEBHOOK, entity.get("id"))
        return {"status": "ok", "event": PAYMENT_CAPTURED, "applied": order.payment_status != before}

    def _on_failed(self, entity: dict) -> dict:
        order = find_by_gateway_order(entity.get("order_id"))
        if order is None:
            logger.warning("webhook_ignored", webhook_event=PAYMENT_FAILED, gateway_order_id=entity.get("order_id"))
            return {"status": "ok", "event": PAYMENT_FAILED, "applied": False}

        with self.locks.hold(order_key(order.id)):
            before = load_order(order.id).status
            changed = current_domain.process(
                FailPayment(order_id=str(order.id), source=PaymentSource.WEBHOOK.value),
                asynchronous=False,
            )

        order = load_order(order.id)
        if changed:
            logger.info(
                "payment_failed",
                order_id=str(order.id),
                reason=entity.get("error_description"),
            )
            self._notify(order, status_moved=order.status != before)
        else:
            logger.info("payment_failure_ignored", order_id=str(order.id), payment_status=order.payment_status)
        return {"status": "ok", "event": PAYMENT_FAILED, "applied": bool(changed)}

    def _on_refunded(self, entity: dict) -> dict:
        order = find_by_gateway_payment(entity.get("payment_id"))
        if order is None:
            logger.warning(
                "webhook_ignored",
                webhook_event=REFUND_PROCESSED,
                gateway_payment_id=entity.get("payment_id"),
            )
            return {"status": "ok", "event": REFUND_PROCESSED, "applied": False}

        amount = entity.get("amount")
        with self.locks.hold(order_key(order.id)):
            changed = current_domain.process(
                RecordRefund(
                    order_id=str(order.id),
                    refund_id=entity.get("id"),
                    amount=float(to_decimal(amount) / 100) if amount is not None else None,
                    reason=(entity.get("notes") or {}).get("reason"),
                    source=PaymentSource.WEBHOOK.value,
                ),
                asynchronous=False,
            )

        order = load_order(order.id)
        if changed:
            self._notify(order, status_moved=False)
        return {"status": "ok", "event": REFUND_PROCESSED, "applied": bool(changed)}

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def refund(self, principal: Principal, order_id, amount=None, reason: str | None = None) -> Order:
        """Refund a paid order through the gateway. Partial amounts are allowed."""
        principal.require(Permission.MANAGE_ORDERS)

        with self.locks.hold(order_key(order_id)):
            order = load_order(order_id)
            if order.payment_status != PaymentStatus.PAID.value:
                raise ValidationError({"payment_status": ["Only paid orders can be refunded"]})

            refund_amount = quantize(order.total if amount is None else amount)
            if refund_amount <= 0 or refund_amount > quantize(order.total):
                raise ValidationError({"amount": ["Refund amount must be greater than 0 and at most the order total"]})

            try:
                result = self.gateway.refund(order.gateway_payment_id, to_minor_units(refund_amount))
            except GatewayError:
                logger.error("refund_failed", order_id=str(order.id), amount=float(refund_amount), exc_info=True)
                raise

            current_domain.process(
                RecordRefund(
                    order_id=str(order.id),
                    refund_id=result.refund_id,
                    amount=float(refund_amount),
                    reason=reason,
                    source=PaymentSource.ADMIN.value,
                ),
                asynchronous=False,
            )

        order = load_order(order_id)
        logger.info(
            "order_refunded",
            order_id=str(order.id),
            refund_id=order.refund_id,
            amount=order.refunded_amount,
            refunded_by=principal.id,
        )
        self._notify(order, status_moved=False)
        return order

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _confirm(self, order_id, source: PaymentSource, gateway_payment_id) -> Order:
        with self.locks.hold(order_key(order_id)):
            before = load_order(order_id).status
            changed = current_domain.process(
                ConfirmPayment(
                    order_id=str(order_id),
                    source=source.value,
                    gateway_payment_id=gateway_payment_id,
                ),
                asynchronous=False,
            )

        order = load_order(order_id)
        if changed:
            logger.info("payment_confirmed", order_id=str(order.id), source=source.value)
            self._notify(order, status_moved=order.status != before)
        else:
            logger.info("payment_confirmation_duplicate", order_id=str(order.id), source=source.value)
        return order

    def _notify(self, order: Order, status_moved: bool) -> None:
        self.notifier.payment_changed(order)
        if status_moved:
            self.notifier.status_changed(order)
