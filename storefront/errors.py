"""Exceptions raised by storefront services.

Every error knows the HTTP status it maps to so the Flask routes can turn it
into a JSON response without a lookup table.
"""

from typing import Any, Dict, Optional


class StoreError(Exception):
    """Base exception for all storefront errors."""

    http_status = 500
    code = "store_error"

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.message, "code": self.code}
        payload.update(self.extra)
        return payload


class ValidationError(StoreError):
    """Raised when a request payload is malformed."""

    http_status = 400
    code = "validation_error"


class ProductNotFound(StoreError):
    http_status = 404
    code = "product_not_found"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found", product_id=product_id)


class OrderNotFound(StoreError):
    http_status = 404
    code = "order_not_found"

    def __init__(self, order_id: Optional[int] = None, *, payment_id: Optional[str] = None):
        self.order_id = order_id
        self.payment_id = payment_id
        if payment_id is not None:
            super().__init__(f"No order found for payment {payment_id}", payment_id=payment_id)
        else:
            super().__init__(f"Order {order_id} not found", order_id=order_id)


class InsufficientStock(StoreError):
    http_status = 400
    code = "insufficient_stock"

    def __init__(self, product_id: int, name: str, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {name}. Available: {available}",
            product_id=product_id,
            available=available,
            requested=requested,
        )


class NoAssociatedPayment(StoreError):
    http_status = 400
    code = "no_associated_payment"

    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} has no associated payment", order_id=order_id)


class AlreadyRefunded(StoreError):
    http_status = 409
    code = "already_refunded"

    def __init__(self, order_id: int, refund_id: Optional[str] = None):
        self.refund_id = refund_id
        super().__init__(f"Order {order_id} has already been refunded", order_id=order_id, refund_id=refund_id)


class InvalidRefundAmount(StoreError):
    http_status = 400
    code = "invalid_refund_amount"


class NotRefundable(StoreError):
    """The gateway refused the refund (cash payment, refund window expired...)."""

    http_status = 400
    code = "not_refundable"


class PaymentNotFoundAtGateway(StoreError):
    """Usually test credentials pointed at a live payment or the other way round."""

    http_status = 404
    code = "payment_not_found_at_gateway"


class GatewayCredentialsMismatch(StoreError):
    http_status = 502
    code = "gateway_credentials_mismatch"


class RefundFailed(StoreError):
    http_status = 502
    code = "refund_failed"


class CheckoutFailed(StoreError):
    http_status = 502
    code = "checkout_failed"


class WebhookRejected(StoreError):
    http_status = 400
    code = "webhook_rejected"


class GatewayError(StoreError):
    """Raised by the payment gateway adapter on a non-success response."""

    http_status = 502
    code = "gateway_error"

    def __init__(self, status: Optional[int], message: str):
        self.status = status
        super().__init__(message, gateway_status=status)


class GatewayUnavailable(GatewayError):
    """Timeouts and connection failures; the caller may retry later."""

    code = "gateway_unavailable"

    def __init__(self, message: str):
        super().__init__(None, message)
