from enum import Enum

from sqlalchemy import Column, DateTime, Index, Integer, Numeric, String, func
from sqlalchemy.orm import relationship
from .base import Base, utcnow


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(String(50), nullable=False, default=OrderStatus.PENDING.value)
    checkout_reference = Column("mercadopago_preference_id", String(255), nullable=True)
    payment_reference = Column("payment_id", String(255), nullable=True)
    payment_status = Column(String(50), nullable=True)
    refund_reference = Column("refund_id", String(255), nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)
    refund_status = Column(String(50), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now())

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")

    __table_args__ = (
        Index("idx_orders_status", "status"),
        Index("idx_orders_email", "customer_email"),
        Index("idx_orders_payment_id", "payment_id"),
        Index("idx_orders_refund_id", "refund_id"),
    )
