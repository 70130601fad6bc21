"""Closed set of webhook shapes the store reacts to.

Webhook bodies only point at a gateway resource; the variants below carry
the pointer and nothing else.
"""
from dataclasses import dataclass
from typing import Any, Optional, Union

from ..errors import WebhookRejected


@dataclass(frozen=True)
class PaymentNotification:
    """``payment.created`` / ``payment.updated``: look the payment up and reconcile."""

    payment_id: str
    action: Optional[str]


@dataclass(frozen=True)
class RefundNotification:
    """``payment.refunded``: the refund has settled at the gateway."""

    payment_id: str
    action: str = "payment.refunded"


@dataclass(frozen=True)
class UnknownEvent:
    type: Optional[str]
    action: Optional[str]


WebhookEvent = Union[PaymentNotification, RefundNotification, UnknownEvent]

REFUND_ACTIONS = {"payment.refunded"}


def parse_webhook(body: Any) -> WebhookEvent:
    """Classify a webhook body.

    Raises ``WebhookRejected`` for a payment event without a usable
    ``data.id``; anything that is not a payment event becomes ``UnknownEvent``.
    """
    if not isinstance(body, dict):
        return UnknownEvent(type=None, action=None)
    event_type = body.get("type")
    action = body.get("action")
    event_type = event_type if isinstance(event_type, str) else None
    action = action if isinstance(action, str) else None

    if event_type != "payment":
        return UnknownEvent(type=event_type, action=action)

    data = body.get("data")
    raw_id = data.get("id") if isinstance(data, dict) else None
    if isinstance(raw_id, bool) or not isinstance(raw_id, (str, int)) or str(raw_id).strip() == "":
        raise WebhookRejected("Payment webhook without data.id", event_type=event_type, action=action)
    payment_id = str(raw_id).strip()

    if action in REFUND_ACTIONS:
        return RefundNotification(payment_id=payment_id, action=action)
    return PaymentNotification(payment_id=payment_id, action=action)
