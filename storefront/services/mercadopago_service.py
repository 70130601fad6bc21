"""
MercadoPago payment gateway adapter.

Thin REST client over ``requests`` covering the four calls the store needs:
checkout preferences, payment lookup, refund creation and refund lookup.
Non-2xx answers raise ``GatewayError`` carrying the HTTP status; network
failures and timeouts raise ``GatewayUnavailable``.
"""
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol

import requests

from ..errors import GatewayError, GatewayUnavailable


@dataclass(frozen=True)
class CheckoutLine:
    product_id: int
    title: str
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class CheckoutIntent:
    intent_id: str
    redirect_url: str


@dataclass(frozen=True)
class PaymentInfo:
    id: str
    status: str
    external_reference: Optional[str]


@dataclass(frozen=True)
class RefundInfo:
    id: str
    status: Optional[str]
    amount: Optional[Decimal]
    created_at: Optional[str] = None


class PaymentGateway(Protocol):
    """What the order, reconciliation and refund services need from a provider."""

    def create_checkout_intent(
        self,
        lines: List[CheckoutLine],
        payer: Dict[str, str],
        return_urls: Dict[str, str],
        external_reference: str,
        notify_url: str,
    ) -> CheckoutIntent: ...

    def get_payment(self, payment_reference: str) -> PaymentInfo: ...

    def create_refund(self, payment_reference: str, amount: Optional[Decimal] = None) -> RefundInfo: ...

    def get_refund(self, payment_reference: str, refund_reference: str) -> RefundInfo: ...


def credential_environment(access_token: Optional[str]) -> str:
    """Classify an access token: ``test``, ``production`` or ``unknown``."""
    token = access_token or ""
    if token.startswith("TEST-"):
        return "test"
    if token.startswith("APP_USR-"):
        return "production"
    return "unknown"


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


class MercadoPagoService:
    API_BASE_URL = "https://api.mercadopago.com"

    def __init__(
        self,
        access_token: str,
        *,
        base_url: Optional[str] = None,
        timeout: float = 10,
        currency: str = "MXN",
        statement_descriptor: str = "TIENDA ONLINE",
        session: Optional[requests.Session] = None,
    ) -> None:
        self.logger = logging.getLogger(__name__)
        self._access_token = access_token
        self.base_url = (base_url or self.API_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.currency = currency
        self.statement_descriptor = statement_descriptor
        self._http = session or requests.Session()

    @property
    def environment(self) -> str:
        return credential_environment(self._access_token)

    def _get_headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    def _request(self, method: str, path: str, *, json: Any = None, idempotency_key: Optional[str] = None) -> Dict:
        url = f"{self.base_url}{path}"
        try:
            response = self._http.request(
                method,
                url,
                headers=self._get_headers(idempotency_key),
                json=json,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            self.logger.warning("MercadoPago %s %s timed out after %ss", method, path, self.timeout)
            raise GatewayUnavailable(f"MercadoPago request timed out: {method} {path}") from None
        except requests.exceptions.RequestException as exc:
            self.logger.warning("MercadoPago %s %s failed: %s", method, path, exc)
            raise GatewayUnavailable(f"MercadoPago request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            message = f"MercadoPago API error: {response.status_code}"
            try:
                error_data = response.json()
                if isinstance(error_data, dict):
                    message = error_data.get("message") or error_data.get("error") or message
            except ValueError:
                pass
            self.logger.info("MercadoPago %s %s -> %s: %s", method, path, response.status_code, message)
            raise GatewayError(response.status_code, message)

        try:
            data = response.json()
        except ValueError:
            raise GatewayError(response.status_code, "MercadoPago returned a non-JSON body") from None
        return data if isinstance(data, dict) else {}

    def create_checkout_intent(
        self,
        lines: List[CheckoutLine],
        payer: Dict[str, str],
        return_urls: Dict[str, str],
        external_reference: str,
        notify_url: str,
    ) -> CheckoutIntent:
        body = {
            "items": [
                {
                    "id": str(line.product_id),
                    "title": line.title,
                    "quantity": line.quantity,
                    "unit_price": float(line.unit_price),
                    "currency_id": self.currency,
                }
                for line in lines
            ],
            "payer": payer,
            "back_urls": return_urls,
            "payment_methods": {
                "excluded_payment_methods": [],
                "excluded_payment_types": [],
                "installments": 12,
            },
            "statement_descriptor": self.statement_descriptor,
            "external_reference": external_reference,
            "notification_url": notify_url,
        }
        data = self._request("POST", "/checkout/preferences", json=body)
        intent_id = data.get("id")
        redirect_url = data.get("init_point")
        if not intent_id or not redirect_url:
            raise GatewayError(None, "MercadoPago preference response is missing id or init_point")
        return CheckoutIntent(intent_id=str(intent_id), redirect_url=redirect_url)

    def get_payment(self, payment_reference: str) -> PaymentInfo:
        data = self._request("GET", f"/v1/payments/{payment_reference}")
        return PaymentInfo(
            id=str(data.get("id", payment_reference)),
            status=str(data.get("status") or "pending"),
            external_reference=data.get("external_reference"),
        )

    def create_refund(self, payment_reference: str, amount: Optional[Decimal] = None) -> RefundInfo:
        body = {"amount": float(amount)} if amount is not None else {}
        data = self._request(
            "POST",
            f"/v1/payments/{payment_reference}/refunds",
            json=body,
            idempotency_key=str(uuid.uuid4()),
        )
        refund_id = data.get("id")
        if refund_id is None:
            raise GatewayError(None, "MercadoPago refund response is missing id")
        return RefundInfo(
            id=str(refund_id),
            status=data.get("status"),
            amount=_decimal(data.get("amount")),
            created_at=data.get("date_created"),
        )

    def get_refund(self, payment_reference: str, refund_reference: str) -> RefundInfo:
        data = self._request("GET", f"/v1/payments/{payment_reference}/refunds/{refund_reference}")
        return RefundInfo(
            id=str(data.get("id", refund_reference)),
            status=data.get("status"),
            amount=_decimal(data.get("amount")),
            created_at=data.get("date_created"),
        )
