"""Tests for the refund round trip."""

from decimal import Decimal

import pytest

from storefront.errors import (
    AlreadyRefunded,
    GatewayCredentialsMismatch,
    GatewayError,
    GatewayUnavailable,
    InvalidRefundAmount,
    NoAssociatedPayment,
    NotRefundable,
    OrderNotFound,
    PaymentNotFoundAtGateway,
    RefundFailed,
)
from storefront.models import OrderStatus
from storefront.services.order_service import OrderLine


def test_full_refund_without_amount(orders, refunds, gateway, paid_order):
    result = refunds.request_refund(paid_order)

    assert gateway.refund_calls == [("pay-1", None)]
    assert result["refund_id"] == "rf-1"
    assert result["amount"] == "200.00"
    assert result["order_status"] == "refunded"
    assert result["message"] == "Refund approved"

    snap = orders.load(paid_order)
    assert snap.status == OrderStatus.REFUNDED.value
    assert snap.payment_status == "refunded"
    assert snap.refund_reference == "rf-1"
    assert snap.refund_amount == Decimal("200.00")
    assert snap.refund_status == "approved"
    assert snap.refunded_at is not None
    assert snap.total == Decimal("200.00")


def test_refund_of_exact_total_is_full(orders, refunds, paid_order):
    result = refunds.request_refund(paid_order, Decimal("200.00"))

    assert result["order_status"] == "refunded"
    assert orders.load(paid_order).status == "refunded"


def test_partial_refund(orders, refunds, gateway, paid_order):
    gateway.refund_status = "in_process"

    result = refunds.request_refund(paid_order, Decimal("60.00"))

    assert result["order_status"] == "partially_refunded"
    assert result["status"] == "in_process"
    assert result["message"] == "Refund is being processed by MercadoPago"
    snap = orders.load(paid_order)
    assert snap.status == "partially_refunded"
    assert snap.refund_amount == Decimal("60.00")


@pytest.mark.parametrize("amount", ["0", "-5.00", "200.01", "1000"])
def test_amount_out_of_range_is_rejected(refunds, gateway, paid_order, amount):
    with pytest.raises(InvalidRefundAmount):
        refunds.request_refund(paid_order, Decimal(amount))
    assert gateway.refund_calls == []


def test_second_refund_is_rejected_with_existing_reference(refunds, gateway, paid_order):
    refunds.request_refund(paid_order, Decimal("50.00"))

    with pytest.raises(AlreadyRefunded) as excinfo:
        refunds.request_refund(paid_order, Decimal("50.00"))

    assert excinfo.value.refund_id == "rf-1"
    assert len(gateway.refund_calls) == 1


def test_missing_order(refunds):
    with pytest.raises(OrderNotFound):
        refunds.request_refund(4040)


def test_order_without_payment(orders, refunds, gateway, make_product):
    pid = make_product()
    order = orders.create_order(customer_name="Ana", customer_email="ana@example.com", lines=[OrderLine(pid, 1)])

    with pytest.raises(NoAssociatedPayment):
        refunds.request_refund(order["id"])
    assert gateway.refund_calls == []


def test_precondition_order_payment_checked_before_amount(orders, refunds, make_product):
    pid = make_product()
    order = orders.create_order(customer_name="Ana", customer_email="ana@example.com", lines=[OrderLine(pid, 1)])

    with pytest.raises(NoAssociatedPayment):
        refunds.request_refund(order["id"], Decimal("-1"))


def test_refunded_status_without_reference_blocks_refund(refunds, reconciler, gateway, paid_order):
    # settled by webhook before the store ever stored a refund id
    reconciler.confirm_refund("pay-1")

    with pytest.raises(AlreadyRefunded):
        refunds.request_refund(paid_order)
    assert gateway.refund_calls == []


@pytest.mark.parametrize(
    "status,expected",
    [
        (400, NotRefundable),
        (404, PaymentNotFoundAtGateway),
        (401, GatewayCredentialsMismatch),
        (403, GatewayCredentialsMismatch),
        (500, RefundFailed),
    ],
)
def test_gateway_errors_are_translated(orders, refunds, gateway, paid_order, status, expected):
    gateway.refund_error = GatewayError(status, "gateway said no")

    with pytest.raises(expected) as excinfo:
        refunds.request_refund(paid_order)

    assert excinfo.value.extra["detail"] == "gateway said no"
    snap = orders.load(paid_order)
    assert snap.status == "completed"
    assert snap.refund_reference is None


def test_gateway_timeout_is_refund_failed(orders, refunds, gateway, paid_order):
    gateway.refund_error = GatewayUnavailable("timed out")

    with pytest.raises(RefundFailed):
        refunds.request_refund(paid_order)
    assert orders.load(paid_order).refund_reference is None


def test_credentials_mismatch_reports_token_environment(refunds, gateway, paid_order):
    gateway.refund_error = GatewayError(401, "invalid access token")

    with pytest.raises(GatewayCredentialsMismatch) as excinfo:
        refunds.request_refund(paid_order)
    assert excinfo.value.extra["credential_environment"] == "test"


def test_losing_a_concurrent_refund_race(orders, refunds, gateway, paid_order):
    def competing_writer():
        orders.record_refund(
            paid_order,
            status=OrderStatus.REFUNDED,
            refund_reference="rf-winner",
            refund_amount=Decimal("200.00"),
            refund_status="approved",
        )

    gateway.before_refund_returns = competing_writer

    with pytest.raises(AlreadyRefunded) as excinfo:
        refunds.request_refund(paid_order)

    assert excinfo.value.refund_id == "rf-winner"
    assert orders.load(paid_order).refund_reference == "rf-winner"


def test_webhook_confirmation_after_synchronous_refund(orders, refunds, reconciler, paid_order):
    refunds.request_refund(paid_order)
    before = orders.load(paid_order)

    reconciler.confirm_refund("pay-1")
    reconciler.confirm_refund("pay-1")

    after = orders.load(paid_order)
    assert after.status == "refunded"
    assert after.payment_status == "refunded"
    assert after.refund_reference == before.refund_reference
    assert after.refund_amount == before.refund_amount


def test_webhook_confirmation_when_synchronous_call_failed(orders, refunds, reconciler, gateway, paid_order):
    gateway.refund_error = GatewayUnavailable("timed out")
    with pytest.raises(RefundFailed):
        refunds.request_refund(paid_order)

    reconciler.confirm_refund("pay-1")

    assert orders.load(paid_order).status == "refunded"


def test_refund_info_without_refund(refunds, gateway, paid_order):
    info = refunds.get_refund_info(paid_order)

    assert info["has_refund"] is False
    assert info["refund_id"] is None
    assert info["source"] == "local"


def test_refund_info_uses_live_lookup(refunds, gateway, paid_order):
    refunds.request_refund(paid_order, Decimal("80.00"))

    info = refunds.get_refund_info(paid_order)

    assert info["has_refund"] is True
    assert info["source"] == "gateway"
    assert info["amount"] == "80.00"
    assert info["refunded_at"] == "2026-10-19T10:00:00.000-04:00"


def test_refund_info_falls_back_to_local_snapshot(refunds, gateway, paid_order):
    refunds.request_refund(paid_order, Decimal("80.00"))
    gateway.lookup_error = GatewayUnavailable("down")

    info = refunds.get_refund_info(paid_order)

    assert info["source"] == "local"
    assert info["refund_id"] == "rf-1"
    assert info["amount"] == "80.00"
    assert info["status"] == "approved"
    assert info["refunded_at"] is not None
