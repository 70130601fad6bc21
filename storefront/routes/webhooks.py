"""MercadoPago webhook receiver and the development-only simulator."""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from ..errors import GatewayError, OrderNotFound, StoreError, WebhookRejected
from ..services.logging import log_event
from ..services.reconciliation_service import describe_failure
from ..services.webhook_events import parse_webhook
from ..utils.validators import ensure_positive_int
from . import error_response, json_object


webhooks_bp = Blueprint("storefront_webhooks", __name__, url_prefix="/api")


def _components() -> Dict[str, Any]:
    return current_app.extensions["storefront_components"]


def _config():
    return current_app.config["STOREFRONT_CONFIG"]


@webhooks_bp.post("/webhook")
def receive_webhook():
    # Any non-2xx answer makes MercadoPago redeliver the notification.
    body = request.get_json(silent=True)
    try:
        event = parse_webhook(body)
    except WebhookRejected as exc:
        log_event("error", "webhook.rejected", error=exc.message, **exc.extra)
        return "", 400

    try:
        _components()["reconciler"].handle_event(event)
    except WebhookRejected as exc:
        log_event("error", "webhook.failed", status=400, **describe_failure(event, exc))
        return "", 400
    except OrderNotFound as exc:
        log_event("error", "webhook.failed", status=404, **describe_failure(event, exc))
        return "", 404
    except GatewayError as exc:
        log_event("error", "webhook.failed", status=500, **describe_failure(event, exc))
        return "", 500
    except Exception as exc:
        log_event("error", "webhook.failed", status=500, **describe_failure(event, exc))
        current_app.logger.exception("Unhandled webhook error")
        return "", 500
    return "", 200


@webhooks_bp.post("/dev/simulate-webhook/<order_id>")
def simulate_webhook(order_id: str):
    if _config().is_production:
        return jsonify({"error": "Not found"}), 404
    try:
        payload = json_object()
        oid = ensure_positive_int(order_id, "order_id")
        payment_status = str(payload.get("payment_status") or "approved").strip()
        result = _components()["reconciler"].simulate_payment(oid, payment_status)
    except StoreError as exc:
        return error_response(exc)
    result["message"] = "Webhook simulated" if result["success"] else "Order status left unchanged"
    return jsonify(result)
