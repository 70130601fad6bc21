"""Storefront service layer."""

from .catalog_service import CatalogService
from .mercadopago_service import MercadoPagoService, PaymentGateway
from .order_service import OrderService
from .reconciliation_service import ReconciliationService
from .refund_service import RefundService

__all__ = [
    "CatalogService",
    "MercadoPagoService",
    "OrderService",
    "PaymentGateway",
    "ReconciliationService",
    "RefundService",
]
