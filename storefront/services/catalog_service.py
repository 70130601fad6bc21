from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from sqlalchemy import func, select
from ..models.product import Product
from ..utils.dto import to_product_dto
from ..errors import ProductNotFound
from .logging import log_event


SAMPLE_PRODUCTS = [
    ("Laptop HP 15\"", "Laptop HP con procesador Intel Core i5, 8GB RAM, 256GB SSD", "12999.00", 10,
     "https://images.unsplash.com/photo-1496181133206-80ce9b88a853?w=400"),
    ("Mouse Logitech", "Mouse inalámbrico Logitech MX Master 3", "1299.00", 25,
     "https://images.unsplash.com/photo-1527864550417-7fd91fc51a46?w=400"),
    ("Teclado Mecánico", "Teclado mecánico RGB con switches Cherry MX", "1899.00", 15,
     "https://images.unsplash.com/photo-1587829741301-dc798b83add3?w=400"),
    ("Monitor 24\"", "Monitor LG 24\" Full HD IPS", "3499.00", 8,
     "https://images.unsplash.com/photo-1527443224154-c4a3942d3acf?w=400"),
    ("Webcam HD", "Webcam Logitech C920 Full HD 1080p", "899.00", 20,
     "https://images.unsplash.com/photo-1587825140708-dfaf72ae4b04?w=400"),
    ("Audífonos Bluetooth", "Audífonos Sony WH-1000XM4 con cancelación de ruido", "5999.00", 12,
     "https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=400"),
]


class CatalogService:
    """Read-only catalog queries.

    Every call opens its own session; nothing is cached between requests so
    stock figures are always read from storage.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def list_available(self) -> List[Dict]:
        """Products with stock left, ordered by name."""
        with self._session_factory() as session:
            rows = session.execute(
                select(Product).where(Product.stock > 0).order_by(Product.name)
            ).scalars().all()
            return [to_product_dto(r) for r in rows]

    def get_product(self, product_id: int) -> Dict:
        with self._session_factory() as session:
            row = session.get(Product, product_id)
            if row is None:
                raise ProductNotFound(product_id)
            return to_product_dto(row)

    def seed(self, products: Optional[Iterable[tuple]] = None) -> int:
        """Insert the sample catalog when the table is empty. Returns rows inserted."""
        with self._session_factory() as session:
            existing = session.execute(select(func.count(Product.id))).scalar_one()
            if existing:
                return 0
            count = 0
            for name, description, price, stock, image_url in products or SAMPLE_PRODUCTS:
                session.add(
                    Product(
                        name=name,
                        description=description,
                        price=Decimal(price),
                        stock=stock,
                        image_url=image_url,
                    )
                )
                count += 1
            session.flush()
            log_event("info", "catalog.seeded", products=count)
            return count
