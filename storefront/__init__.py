"""Online store backend: catalog, orders, MercadoPago checkout, webhooks and refunds."""

__version__ = "0.1.0"
