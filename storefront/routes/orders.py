"""Order, checkout and refund endpoints."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify

from ..config import RETURN_KINDS
from ..errors import CheckoutFailed, GatewayError, StoreError, ValidationError
from ..services.logging import log_event
from ..services.mercadopago_service import CheckoutLine
from ..services.order_service import parse_lines
from ..utils.validators import ensure_email, ensure_money, ensure_positive_int
from . import error_response, json_object


orders_bp = Blueprint("storefront_orders", __name__, url_prefix="/api/orders")
logger = logging.getLogger(__name__)


def _components() -> Dict[str, Any]:
    return current_app.extensions["storefront_components"]


def _config():
    return current_app.config["STOREFRONT_CONFIG"]


@orders_bp.post("")
def create_order():
    try:
        payload = json_object()
        customer_name = str(payload.get("customer_name") or "").strip()
        if not customer_name:
            raise ValidationError("Name is required")
        customer_email = ensure_email(payload.get("customer_email"))
        items = payload.get("items")
        if not isinstance(items, list) or not items:
            raise ValidationError("At least one product is required")
        lines = parse_lines(items)

        order = _components()["orders"].create_order(
            customer_name=customer_name,
            customer_email=customer_email,
            lines=lines,
        )
    except StoreError as exc:
        return error_response(exc)
    except Exception:
        logger.exception("Error creating order")
        return jsonify({"error": "Error creating order"}), 500

    config = _config()
    order_id = order["id"]
    checkout_lines = [
        CheckoutLine(
            product_id=item["product_id"],
            title=item["product_name"] or f"Product {item['product_id']}",
            quantity=item["quantity"],
            unit_price=Decimal(item["price"]),
        )
        for item in order["items"]
    ]
    try:
        intent = _components()["gateway"].create_checkout_intent(
            checkout_lines,
            {"name": customer_name, "email": customer_email},
            {kind: config.return_url(kind, order_id) for kind in RETURN_KINDS},
            str(order_id),
            config.webhook_url,
        )
    except GatewayError as exc:
        log_event("error", "order.checkout_failed", order_id=order_id, gateway_status=exc.status, error=exc.message)
        return error_response(CheckoutFailed("Could not create the MercadoPago checkout", order_id=order_id, detail=exc.message))

    _components()["orders"].attach_checkout_reference(order_id, intent.intent_id)
    return jsonify(
        {
            "order_id": order_id,
            "preference_id": intent.intent_id,
            "init_point": intent.redirect_url,
        }
    )


@orders_bp.get("")
def list_orders():
    try:
        return jsonify(_components()["orders"].list_orders())
    except Exception:
        logger.exception("Error fetching orders")
        return jsonify({"error": "Error fetching orders"}), 500


@orders_bp.get("/<order_id>")
def get_order(order_id: str):
    try:
        oid = ensure_positive_int(order_id, "order_id")
        return jsonify(_components()["orders"].get_order(oid))
    except StoreError as exc:
        return error_response(exc)
    except Exception:
        logger.exception("Error fetching order %s", order_id)
        return jsonify({"error": "Error fetching order"}), 500


@orders_bp.get("/<order_id>/status")
def get_order_status(order_id: str):
    try:
        oid = ensure_positive_int(order_id, "order_id")
        return jsonify(_components()["orders"].get_status(oid))
    except StoreError as exc:
        return error_response(exc)
    except Exception:
        logger.exception("Error fetching status for order %s", order_id)
        return jsonify({"error": "Error fetching order status"}), 500


@orders_bp.post("/<order_id>/refund")
def request_refund(order_id: str):
    try:
        payload = json_object()
        oid = ensure_positive_int(order_id, "order_id")
        amount = ensure_money(payload.get("amount"), "amount")
        return jsonify(_components()["refunds"].request_refund(oid, amount))
    except StoreError as exc:
        return error_response(exc)
    except Exception:
        logger.exception("Error refunding order %s", order_id)
        return jsonify({"error": "Error processing refund"}), 500


@orders_bp.get("/<order_id>/refund")
def get_refund(order_id: str):
    try:
        oid = ensure_positive_int(order_id, "order_id")
        return jsonify(_components()["refunds"].get_refund_info(oid))
    except StoreError as exc:
        return error_response(exc)
    except Exception:
        logger.exception("Error fetching refund for order %s", order_id)
        return jsonify({"error": "Error fetching refund"}), 500
