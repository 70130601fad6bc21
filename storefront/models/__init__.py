from .base import Base
from .order import Order, OrderStatus
from .order_item import OrderItem
from .product import Product

__all__ = ["Base", "Order", "OrderItem", "OrderStatus", "Product"]
