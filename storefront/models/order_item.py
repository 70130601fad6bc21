from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, func
from sqlalchemy.orm import relationship
from .base import Base, utcnow


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    # price snapshot taken when the order was placed
    price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, server_default=func.now())

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    __table_args__ = (Index("idx_order_items_order_id", "order_id"),)
