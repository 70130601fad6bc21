"""Pytest fixtures for storefront tests."""

from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from storefront.config import AppConfig
from storefront.db.session import Database
from storefront.errors import GatewayError
from storefront.models import Product
from storefront.services import OrderService, ReconciliationService, RefundService
from storefront.services.mercadopago_service import CheckoutIntent, PaymentInfo, RefundInfo
from storefront.services.order_service import OrderLine


class FakeGateway:
    """In-memory stand-in for MercadoPago."""

    def __init__(self) -> None:
        self.payments: Dict[str, PaymentInfo] = {}
        self.refunds: Dict[str, RefundInfo] = {}
        self.refund_calls: List[tuple] = []
        self.checkout_calls: List[dict] = []
        self.payment_error: Optional[Exception] = None
        self.refund_error: Optional[Exception] = None
        self.lookup_error: Optional[Exception] = None
        self.checkout_error: Optional[Exception] = None
        self.refund_status = "approved"
        self.before_refund_returns = None

    def add_payment(self, payment_id: str, status: str, external_reference: Optional[str]) -> None:
        self.payments[payment_id] = PaymentInfo(id=payment_id, status=status, external_reference=external_reference)

    def create_checkout_intent(self, lines, payer, return_urls, external_reference, notify_url) -> CheckoutIntent:
        if self.checkout_error is not None:
            raise self.checkout_error
        self.checkout_calls.append(
            {
                "lines": lines,
                "payer": payer,
                "return_urls": return_urls,
                "external_reference": external_reference,
                "notify_url": notify_url,
            }
        )
        return CheckoutIntent(
            intent_id=f"pref-{external_reference}",
            redirect_url=f"https://mp.test/checkout/{external_reference}",
        )

    def get_payment(self, payment_reference: str) -> PaymentInfo:
        if self.payment_error is not None:
            raise self.payment_error
        if payment_reference not in self.payments:
            raise GatewayError(404, "Payment not found")
        return self.payments[payment_reference]

    def create_refund(self, payment_reference: str, amount: Optional[Decimal] = None) -> RefundInfo:
        self.refund_calls.append((payment_reference, amount))
        if self.refund_error is not None:
            raise self.refund_error
        refund_id = f"rf-{len(self.refund_calls)}"
        refund = RefundInfo(
            id=refund_id,
            status=self.refund_status,
            amount=amount,
            created_at="2026-10-19T10:00:00.000-04:00",
        )
        self.refunds[refund_id] = refund
        if self.before_refund_returns is not None:
            self.before_refund_returns()
        return refund

    def get_refund(self, payment_reference: str, refund_reference: str) -> RefundInfo:
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.refunds[refund_reference]


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def orders(database):
    return OrderService(database.session)


@pytest.fixture
def reconciler(orders, gateway):
    return ReconciliationService(orders, gateway)


@pytest.fixture
def refunds(orders, gateway):
    return RefundService(orders, gateway, access_token="TEST-123")


@pytest.fixture
def make_product(database):
    """Insert a product and return its id."""

    def _make(name="Mouse", price="100.00", stock=10) -> int:
        with database.session() as session:
            product = Product(name=name, price=Decimal(price), stock=stock)
            session.add(product)
            session.flush()
            return product.id

    return _make


@pytest.fixture
def stock_of(database):
    def _stock(product_id: int) -> int:
        with database.session() as session:
            return session.get(Product, product_id).stock

    return _stock


@pytest.fixture
def paid_order(orders, reconciler, gateway, make_product):
    """A completed order for 2 x 100.00 paid with payment 'pay-1'."""
    pid = make_product(price="100.00", stock=10)
    order = orders.create_order(
        customer_name="Ana",
        customer_email="ana@example.com",
        lines=[OrderLine(product_id=pid, quantity=2)],
    )
    gateway.add_payment("pay-1", "approved", str(order["id"]))
    reconciler.reconcile_payment("pay-1")
    return order["id"]


@pytest.fixture
def app_config():
    return AppConfig(
        database_url="sqlite://",
        secret_key="test",
        log_level="WARNING",
        environment="development",
        currency="MXN",
        frontend_url="http://shop.test",
        webhook_url="http://api.test/api/webhook",
        gateway_access_token="TEST-abc",
        gateway_base_url="https://api.mercadopago.test",
        gateway_timeout=5,
        statement_descriptor="TIENDA ONLINE",
        port=3001,
    )
