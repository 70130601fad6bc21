from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence
from sqlalchemy import select, update
from sqlalchemy.orm import selectinload
from ..errors import InsufficientStock, OrderNotFound, ProductNotFound, ValidationError
from ..models.order import Order, OrderStatus
from ..models.order_item import OrderItem
from ..models.product import Product
from ..models.base import utcnow
from ..utils.dto import to_order_dto, to_order_item_dto
from ..utils.validators import ensure_positive_int
from .logging import log_event


CENTS = Decimal("0.01")

# Statuses an order may be in for a payment event to move it to the key status.
# Replays of the current status are allowed so reconciliation stays idempotent.
PAYMENT_TRANSITIONS = {
    OrderStatus.PENDING: (OrderStatus.PENDING,),
    OrderStatus.PROCESSING: (OrderStatus.PENDING, OrderStatus.PROCESSING),
    OrderStatus.COMPLETED: (OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.COMPLETED),
    OrderStatus.CANCELLED: (OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.CANCELLED),
}


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class OrderSnapshot:
    """Point-in-time copy of the order fields the payment/refund logic reads."""

    id: int
    total: Decimal
    status: str
    payment_reference: Optional[str]
    payment_status: Optional[str]
    refund_reference: Optional[str]
    refund_amount: Optional[Decimal]
    refund_status: Optional[str]
    refunded_at: Optional[datetime]

    @classmethod
    def from_row(cls, row: Order) -> "OrderSnapshot":
        return cls(
            id=row.id,
            total=Decimal(row.total),
            status=row.status,
            payment_reference=row.payment_reference,
            payment_status=row.payment_status,
            refund_reference=row.refund_reference,
            refund_amount=Decimal(row.refund_amount) if row.refund_amount is not None else None,
            refund_status=row.refund_status,
            refunded_at=row.refunded_at,
        )


@dataclass(frozen=True)
class TransitionResult:
    order_id: int
    applied: bool
    status: str


class OrderService:
    """Order ledger: the only writer of order rows and product stock."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def create_order(self, *, customer_name: str, customer_email: str, lines: Sequence[OrderLine]) -> Dict:
        """Create a pending order and reserve stock for every line.

        Order row, item rows and stock decrements commit together or not at
        all. The decrement is a conditional UPDATE (``stock >= quantity``), so
        two concurrent orders can never push a product below zero.
        """
        if not lines:
            raise ValidationError("At least one product is required")
        with self._session_factory() as session:
            requested: "OrderedDict[int, int]" = OrderedDict()
            for line in lines:
                requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

            products: Dict[int, Product] = {}
            for product_id, quantity in requested.items():
                product = session.execute(
                    select(Product).where(Product.id == product_id).with_for_update()
                ).scalar_one_or_none()
                if product is None:
                    raise ProductNotFound(product_id)
                if product.stock < quantity:
                    raise InsufficientStock(product.id, product.name, product.stock, quantity)
                products[product_id] = product

            total = Decimal("0")
            items: List[OrderItem] = []
            for line in lines:
                price = Decimal(products[line.product_id].price)
                total += price * line.quantity
                items.append(OrderItem(product_id=line.product_id, quantity=line.quantity, price=price))

            order = Order(
                customer_name=customer_name,
                customer_email=customer_email,
                total=total.quantize(CENTS),
                status=OrderStatus.PENDING.value,
                items=items,
            )
            session.add(order)
            session.flush()

            for product_id, quantity in requested.items():
                result = session.execute(
                    update(Product)
                    .where(Product.id == product_id, Product.stock >= quantity)
                    .values(stock=Product.stock - quantity)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    # lost a race with another order; the session rolls everything back
                    current = session.execute(
                        select(Product.stock).where(Product.id == product_id)
                    ).scalar_one()
                    raise InsufficientStock(product_id, products[product_id].name, current, quantity)

            dto = to_order_dto(order)
            dto["items"] = [to_order_item_dto(it) for it in order.items]
            log_event("info", "order.created", order_id=order.id, items=len(items), total=dto["total"])
            return dto

    def attach_checkout_reference(self, order_id: int, reference: str) -> None:
        with self._session_factory() as session:
            session.execute(
                update(Order)
                .where(Order.id == order_id)
                .values(checkout_reference=reference)
                .execution_options(synchronize_session=False)
            )

    def list_orders(self) -> List[Dict]:
        with self._session_factory() as session:
            rows = session.execute(
                select(Order).order_by(Order.created_at.desc(), Order.id.desc())
            ).scalars().all()
            return [to_order_dto(r) for r in rows]

    def get_order(self, order_id: int) -> Dict:
        with self._session_factory() as session:
            row = session.execute(
                select(Order)
                .where(Order.id == order_id)
                .options(selectinload(Order.items).selectinload(OrderItem.product))
            ).scalar_one_or_none()
            if row is None:
                raise OrderNotFound(order_id)
            dto = to_order_dto(row)
            dto["items"] = [to_order_item_dto(it) for it in row.items]
            return dto

    def get_status(self, order_id: int) -> Dict:
        snap = self.load(order_id)
        return {
            "order_id": snap.id,
            "status": snap.status,
            "payment_status": snap.payment_status or "pending",
            "payment_id": snap.payment_reference,
        }

    def load(self, order_id: int) -> OrderSnapshot:
        with self._session_factory() as session:
            row = session.get(Order, order_id)
            if row is None:
                raise OrderNotFound(order_id)
            return OrderSnapshot.from_row(row)

    def find_by_payment_reference(self, payment_reference: str) -> Optional[OrderSnapshot]:
        with self._session_factory() as session:
            row = session.execute(
                select(Order).where(Order.payment_reference == payment_reference).order_by(Order.id)
            ).scalars().first()
            return OrderSnapshot.from_row(row) if row is not None else None

    def apply_payment_status(
        self, order_id: int, status: OrderStatus, *, payment_reference: str, payment_status: str
    ) -> TransitionResult:
        """Write a payment-driven status change if the current status allows it.

        Status, payment status and payment reference move together in one
        conditional UPDATE. Orders outside the allowed source statuses (for
        example already refunded or cancelled) are left untouched.
        """
        sources = [s.value for s in PAYMENT_TRANSITIONS[status]]
        with self._session_factory() as session:
            result = session.execute(
                update(Order)
                .where(Order.id == order_id, Order.status.in_(sources))
                .values(
                    status=status.value,
                    payment_status=payment_status,
                    payment_reference=payment_reference,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                return TransitionResult(order_id, True, status.value)
            current = session.execute(select(Order.status).where(Order.id == order_id)).scalar_one_or_none()
            if current is None:
                raise OrderNotFound(order_id)
            return TransitionResult(order_id, False, current)

    def record_refund(
        self,
        order_id: int,
        *,
        status: OrderStatus,
        refund_reference: str,
        refund_amount: Decimal,
        refund_status: Optional[str],
    ) -> bool:
        """Persist a gateway refund unless another writer already stored one.

        Returns False when ``refund_id`` was no longer empty.
        """
        with self._session_factory() as session:
            result = session.execute(
                update(Order)
                .where(Order.id == order_id, Order.refund_reference.is_(None))
                .values(
                    status=status.value,
                    payment_status="refunded",
                    refund_reference=refund_reference,
                    refunded_at=utcnow(),
                    refund_amount=refund_amount.quantize(CENTS),
                    refund_status=refund_status,
                )
                .execution_options(synchronize_session=False)
            )
            return bool(result.rowcount)

    def confirm_refund(self, payment_reference: str) -> List[int]:
        """Mark every order paid with ``payment_reference`` as refunded.

        Safe to repeat and safe to race the synchronous refund call: both
        write the same target values.
        """
        with self._session_factory() as session:
            ids = session.execute(
                select(Order.id).where(Order.payment_reference == payment_reference)
            ).scalars().all()
            if ids:
                session.execute(
                    update(Order)
                    .where(Order.id.in_(ids))
                    .values(status=OrderStatus.REFUNDED.value, payment_status="refunded")
                    .execution_options(synchronize_session=False)
                )
            return list(ids)


def parse_lines(items: Iterable[Dict]) -> List[OrderLine]:
    lines = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        lines.append(
            OrderLine(
                product_id=ensure_positive_int(item.get("product_id"), f"items[{idx}].product_id"),
                quantity=ensure_positive_int(item.get("quantity"), f"items[{idx}].quantity"),
            )
        )
    return lines
