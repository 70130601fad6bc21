from decimal import Decimal
from typing import Any, Dict, Optional


def money(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    return str(Decimal(value).quantize(Decimal("0.01")))


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value is not None else None


def to_product_dto(row: Any) -> Dict:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "price": money(row.price),
        "stock": row.stock or 0,
        "image_url": row.image_url,
        "created_at": _iso(row.created_at),
        "updated_at": _iso(row.updated_at),
    }


def to_order_dto(row: Any) -> Dict:
    return {
        "id": row.id,
        "customer_name": row.customer_name,
        "customer_email": row.customer_email,
        "total": money(row.total),
        "status": row.status,
        "mercadopago_preference_id": row.checkout_reference,
        "payment_id": row.payment_reference,
        "payment_status": row.payment_status,
        "refund_id": row.refund_reference,
        "refunded_at": _iso(row.refunded_at),
        "refund_amount": money(row.refund_amount),
        "refund_status": row.refund_status,
        "created_at": _iso(row.created_at),
        "updated_at": _iso(row.updated_at),
    }


def to_order_item_dto(row: Any) -> Dict:
    product = getattr(row, "product", None)
    return {
        "id": row.id,
        "order_id": row.order_id,
        "product_id": row.product_id,
        "quantity": row.quantity,
        "price": money(row.price),
        "product_name": product.name if product is not None else None,
        "product_image": product.image_url if product is not None else None,
    }
