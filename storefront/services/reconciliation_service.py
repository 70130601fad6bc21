import time
from typing import Dict, Optional

from ..errors import OrderNotFound, StoreError, WebhookRejected
from ..models.order import OrderStatus
from .logging import log_event
from .order_service import OrderService, TransitionResult
from .webhook_events import PaymentNotification, RefundNotification, UnknownEvent, WebhookEvent


PAYMENT_STATUS_MAP = {
    "approved": OrderStatus.COMPLETED,
    "pending": OrderStatus.PROCESSING,
    "in_process": OrderStatus.PROCESSING,
    "rejected": OrderStatus.CANCELLED,
    "cancelled": OrderStatus.CANCELLED,
}


def map_payment_status(payment_status: Optional[str]) -> OrderStatus:
    return PAYMENT_STATUS_MAP.get((payment_status or "").strip().lower(), OrderStatus.PENDING)


def parse_order_reference(reference: Optional[str]) -> Optional[int]:
    """Order id encoded in a payment's external reference, or None."""
    if reference is None:
        return None
    text = str(reference).strip()
    if not (text.isascii() and text.isdigit()):
        return None
    order_id = int(text)
    return order_id if order_id > 0 else None


class ReconciliationService:
    """Applies gateway payment and refund events to orders."""

    def __init__(self, orders: OrderService, gateway):
        self._orders = orders
        self._gateway = gateway

    def handle_event(self, event: WebhookEvent) -> Optional[TransitionResult]:
        if isinstance(event, PaymentNotification):
            return self.reconcile_payment(event.payment_id, action=event.action)
        if isinstance(event, RefundNotification):
            self.confirm_refund(event.payment_id)
            return None
        if isinstance(event, UnknownEvent):
            log_event("info", "webhook.ignored", event_type=event.type, action=event.action)
        return None

    def reconcile_payment(self, payment_id: str, *, action: Optional[str] = None) -> TransitionResult:
        """Fetch the authoritative payment and move its order accordingly.

        Gateway failures propagate untouched so the webhook is answered with
        an error and redelivered; nothing is written before the lookup.
        """
        payment = self._gateway.get_payment(payment_id)
        order_id = parse_order_reference(payment.external_reference)
        if order_id is None:
            log_event(
                "error",
                "webhook.unresolved_reference",
                event_type="payment",
                action=action,
                payment_id=payment_id,
                external_reference=payment.external_reference,
            )
            raise WebhookRejected(
                "Payment has no usable external_reference",
                payment_id=payment_id,
            )
        return self._apply(order_id, payment.status, payment.id, source="gateway")

    def simulate_payment(self, order_id: int, payment_status: str = "approved") -> Dict:
        """Development shortcut: apply a payment status without calling the gateway."""
        fake_payment_id = f"SIMULATED_{int(time.time() * 1000)}"
        result = self._apply(order_id, payment_status, fake_payment_id, source="simulation")
        return {
            "success": result.applied,
            "order_id": order_id,
            "payment_status": payment_status,
            "order_status": result.status,
            "payment_id": fake_payment_id,
        }

    def _apply(self, order_id: int, payment_status: str, payment_id: str, *, source: str) -> TransitionResult:
        target = map_payment_status(payment_status)
        result = self._orders.apply_payment_status(
            order_id,
            target,
            payment_reference=payment_id,
            payment_status=payment_status,
        )
        if result.applied:
            log_event(
                "info",
                "payment.reconciled",
                order_id=order_id,
                payment_id=payment_id,
                payment_status=payment_status,
                order_status=result.status,
                source=source,
            )
        else:
            log_event(
                "warning",
                "payment.transition_ignored",
                order_id=order_id,
                payment_id=payment_id,
                payment_status=payment_status,
                requested_status=target.value,
                current_status=result.status,
                source=source,
            )
        return result

    def confirm_refund(self, payment_id: str) -> None:
        order_ids = self._orders.confirm_refund(payment_id)
        if not order_ids:
            log_event(
                "error",
                "refund.confirmation_unmatched",
                event_type="payment",
                action="payment.refunded",
                payment_id=payment_id,
            )
            raise OrderNotFound(payment_id=payment_id)
        log_event("info", "refund.confirmed", payment_id=payment_id, order_ids=order_ids)


def describe_failure(event: WebhookEvent, exc: Exception) -> Dict:
    """Context recorded for failed webhooks so they can be reconciled by hand."""
    fields = {
        "event_type": getattr(event, "type", "payment"),
        "action": getattr(event, "action", None),
        "payment_id": getattr(event, "payment_id", None),
        "error": str(exc),
    }
    if isinstance(exc, StoreError):
        fields.update({k: v for k, v in exc.extra.items() if k in ("order_id", "gateway_status")})
    return fields
