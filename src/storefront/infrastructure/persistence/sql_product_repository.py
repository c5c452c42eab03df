"""SQLAlchemy implementation of ProductRepository."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Connection, insert, select, update
from sqlalchemy.engine import Row

from storefront.domain.model.product import Product
from storefront.domain.model.value_objects import Money
from storefront.domain.repository.product_repository import ProductRepository
from storefront.infrastructure.persistence.schema import products


class SqlProductRepository(ProductRepository):

    def __init__(self, connection: Connection) -> None:
        self._conn = connection

    # --- ProductRepository interface ------------------------------------------

    def get_by_id(self, product_id: int) -> Product | None:
        row = self._conn.execute(
            select(products).where(products.c.id == product_id)
        ).first()
        return self._to_domain(row) if row is not None else None

    def get_for_update(self, product_id: int) -> Product | None:
        row = self._conn.execute(
            select(products).where(products.c.id == product_id).with_for_update()
        ).first()
        return self._to_domain(row) if row is not None else None

    def list_all(self) -> list[Product]:
        rows = self._conn.execute(select(products).order_by(products.c.id))
        return [self._to_domain(row) for row in rows]

    def save(self, product: Product) -> None:
        now = datetime.now(timezone.utc)
        if product.id is None:
            result = self._conn.execute(
                insert(products).values(
                    title=product.title,
                    price=product.price.amount,
                    currency=product.price.currency,
                    stock=product.stock,
                    reserved=product.reserved,
                    category=product.category,
                    created_at=now,
                    updated_at=now,
                )
            )
            product.id = result.inserted_primary_key[0]
            return

        self._conn.execute(
            update(products)
            .where(products.c.id == product.id)
            .values(
                title=product.title,
                price=product.price.amount,
                currency=product.price.currency,
                category=product.category,
                updated_at=now,
            )
        )

    # --- Stock primitives -----------------------------------------------------

    def try_decrement_stock(self, product_id: int, quantity: int) -> bool:
        result = self._conn.execute(
            update(products)
            .where(products.c.id == product_id, products.c.stock >= quantity)
            .values(
                stock=products.c.stock - quantity,
                reserved=products.c.reserved + quantity,
                updated_at=datetime.now(timezone.utc),
            )
        )
        return result.rowcount == 1

    def return_to_stock(self, product_id: int, quantity: int) -> None:
        self._conn.execute(
            update(products)
            .where(products.c.id == product_id, products.c.reserved >= quantity)
            .values(
                stock=products.c.stock + quantity,
                reserved=products.c.reserved - quantity,
                updated_at=datetime.now(timezone.utc),
            )
        )

    def drop_reserved(self, product_id: int, quantity: int) -> None:
        self._conn.execute(
            update(products)
            .where(products.c.id == product_id, products.c.reserved >= quantity)
            .values(
                reserved=products.c.reserved - quantity,
                updated_at=datetime.now(timezone.utc),
            )
        )

    def add_stock(self, product_id: int, quantity: int) -> None:
        self._conn.execute(
            update(products)
            .where(products.c.id == product_id)
            .values(
                stock=products.c.stock + quantity,
                updated_at=datetime.now(timezone.utc),
            )
        )

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_domain(row: Row) -> Product:
        return Product(
            id=row.id,
            title=row.title,
            price=Money(row.price, row.currency),
            stock=row.stock,
            reserved=row.reserved,
            category=row.category,
        )
