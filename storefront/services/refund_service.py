from decimal import Decimal
from typing import Dict, Optional

from ..errors import (
    AlreadyRefunded,
    GatewayCredentialsMismatch,
    GatewayError,
    InvalidRefundAmount,
    NoAssociatedPayment,
    NotRefundable,
    PaymentNotFoundAtGateway,
    RefundFailed,
)
from ..models.order import OrderStatus
from ..utils.dto import money
from .logging import log_event
from .mercadopago_service import credential_environment
from .order_service import OrderService, OrderSnapshot


class RefundService:
    """Refund round trip: validate locally, call the gateway, persist the outcome.

    No database transaction is held while the gateway call is in flight. The
    persist step only writes if the order still has no refund id, so two
    concurrent requests can never both record a refund; the loser's gateway
    call is expected to be refused by the provider.
    """

    def __init__(self, orders: OrderService, gateway, *, access_token: Optional[str] = None):
        self._orders = orders
        self._gateway = gateway
        self._access_token = access_token

    def _validate(self, order: OrderSnapshot, amount: Optional[Decimal]) -> None:
        if not order.payment_reference:
            raise NoAssociatedPayment(order.id)
        if order.refund_reference:
            raise AlreadyRefunded(order.id, order.refund_reference)
        if order.status == OrderStatus.REFUNDED.value:
            raise AlreadyRefunded(order.id)
        if amount is not None and not (Decimal("0") < amount <= order.total):
            raise InvalidRefundAmount(
                f"Refund amount must be greater than 0 and at most {money(order.total)}",
                order_id=order.id,
                max_amount=money(order.total),
            )

    def _translate(self, order: OrderSnapshot, exc: GatewayError) -> Exception:
        if exc.status == 400:
            return NotRefundable(
                "This payment cannot be refunded (e.g. cash payment or outside the refund window)",
                order_id=order.id,
                detail=exc.message,
            )
        if exc.status == 404:
            return PaymentNotFoundAtGateway(
                "Payment not found at MercadoPago; check that the access token belongs to the "
                "same environment (test/live) the payment was made in",
                order_id=order.id,
                payment_id=order.payment_reference,
                detail=exc.message,
            )
        if exc.status in (401, 403):
            return GatewayCredentialsMismatch(
                "MercadoPago rejected the credentials for this payment; test and live "
                "credentials cannot refund each other's payments",
                order_id=order.id,
                credential_environment=credential_environment(self._access_token),
                detail=exc.message,
            )
        return RefundFailed("Refund failed", order_id=order.id, detail=exc.message, gateway_status=exc.status)

    def request_refund(self, order_id: int, amount: Optional[Decimal] = None) -> Dict:
        order = self._orders.load(order_id)
        self._validate(order, amount)

        try:
            refund = self._gateway.create_refund(order.payment_reference, amount)
        except GatewayError as exc:
            log_event(
                "error",
                "refund.gateway_failed",
                order_id=order.id,
                payment_id=order.payment_reference,
                gateway_status=exc.status,
                error=exc.message,
            )
            raise self._translate(order, exc) from exc

        refunded = refund.amount if refund.amount is not None else (amount if amount is not None else order.total)
        new_status = OrderStatus.REFUNDED if refunded >= order.total else OrderStatus.PARTIALLY_REFUNDED

        stored = self._orders.record_refund(
            order.id,
            status=new_status,
            refund_reference=refund.id,
            refund_amount=refunded,
            refund_status=refund.status,
        )
        if not stored:
            # another request recorded its refund between validation and now
            current = self._orders.load(order.id)
            log_event(
                "error",
                "refund.persist_conflict",
                order_id=order.id,
                payment_id=order.payment_reference,
                refund_id=refund.id,
                existing_refund_id=current.refund_reference,
            )
            raise AlreadyRefunded(order.id, current.refund_reference)

        log_event(
            "info",
            "refund.created",
            order_id=order.id,
            payment_id=order.payment_reference,
            refund_id=refund.id,
            amount=money(refunded),
            refund_status=refund.status,
            order_status=new_status.value,
        )
        if refund.status == "approved":
            message = "Refund approved"
        else:
            message = "Refund is being processed by MercadoPago"
        return {
            "success": True,
            "order_id": order.id,
            "refund_id": refund.id,
            "status": refund.status,
            "order_status": new_status.value,
            "amount": money(refunded),
            "message": message,
        }

    def get_refund_info(self, order_id: int) -> Dict:
        """Refund details, refreshed from the gateway when it answers.

        A failed lookup falls back to the values stored with the order.
        """
        order = self._orders.load(order_id)
        info = {
            "order_id": order.id,
            "has_refund": bool(order.refund_reference),
            "order_status": order.status,
            "refund_id": order.refund_reference,
            "status": order.refund_status,
            "amount": money(order.refund_amount),
            "refunded_at": order.refunded_at.isoformat() if order.refunded_at else None,
            "source": "local",
        }
        if not order.refund_reference or not order.payment_reference:
            return info
        try:
            live = self._gateway.get_refund(order.payment_reference, order.refund_reference)
        except GatewayError as exc:
            log_event(
                "warning",
                "refund.lookup_failed",
                order_id=order.id,
                refund_id=order.refund_reference,
                gateway_status=exc.status,
                error=exc.message,
            )
            return info
        info.update(
            {
                "status": live.status or info["status"],
                "amount": money(live.amount) if live.amount is not None else info["amount"],
                "refunded_at": live.created_at or info["refunded_at"],
                "source": "gateway",
            }
        )
        return info
