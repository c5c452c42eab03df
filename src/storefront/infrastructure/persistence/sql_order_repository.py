"""SQLAlchemy implementation of OrderRepository."""

from __future__ import annotations

import logging

from sqlalchemy import Connection, Select, insert, select, update
from sqlalchemy.engine import Row

from storefront.domain.model.order import Order, OrderItem, OrderStatus
from storefront.domain.model.value_objects import Money, Quantity
from storefront.domain.repository.order_repository import OrderRepository
from storefront.infrastructure.persistence.schema import as_utc, order_items, orders

logger = logging.getLogger(__name__)


class SqlOrderRepository(OrderRepository):

    def __init__(self, connection: Connection) -> None:
        self._conn = connection

    # --- OrderRepository interface --------------------------------------------

    def get_by_id(self, order_id: int) -> Order | None:
        row = self._conn.execute(select(orders).where(orders.c.id == order_id)).first()
        return self._load(row)

    def get_for_update(self, order_id: int) -> Order | None:
        row = self._conn.execute(
            select(orders).where(orders.c.id == order_id).with_for_update()
        ).first()
        return self._load(row)

    def list_by_user(self, user_id: int) -> list[Order]:
        return self._load_many(select(orders).where(orders.c.user_id == user_id))

    def list_all(self) -> list[Order]:
        return self._load_many(select(orders))

    def save(self, order: Order) -> None:
        if order.id is None:
            self._insert(order)
            return

        # Items and total never change after creation.
        self._conn.execute(
            update(orders)
            .where(orders.c.id == order.id)
            .values(status=order.status.value, updated_at=order.updated_at)
        )

    # --- Helpers --------------------------------------------------------------

    def _insert(self, order: Order) -> None:
        total = order.total
        result = self._conn.execute(
            insert(orders).values(
                user_id=order.user_id,
                total=total.amount,
                currency=total.currency,
                status=order.status.value,
                created_at=order.created_at,
                updated_at=order.updated_at,
            )
        )
        order.id = result.inserted_primary_key[0]
        self._conn.execute(
            insert(order_items),
            [
                {
                    "order_id": order.id,
                    "product_id": item.product_id,
                    "product_title": item.product_title,
                    "quantity": item.quantity.value,
                    "price": item.unit_price.amount,
                    "currency": item.unit_price.currency,
                }
                for item in order.items
            ],
        )

    def _load(self, row: Row | None) -> Order | None:
        if row is None:
            return None
        return self._to_domain(row, self._items_for([row.id]).get(row.id, []))

    def _load_many(self, query: Select) -> list[Order]:
        rows = self._conn.execute(
            query.order_by(orders.c.created_at.desc(), orders.c.id.desc())
        ).all()
        items = self._items_for([row.id for row in rows])
        return [self._to_domain(row, items.get(row.id, [])) for row in rows]

    def _items_for(self, order_ids: list[int]) -> dict[int, list[OrderItem]]:
        if not order_ids:
            return {}
        rows = self._conn.execute(
            select(order_items)
            .where(order_items.c.order_id.in_(order_ids))
            .order_by(order_items.c.id)
        )
        grouped: dict[int, list[OrderItem]] = {}
        for row in rows:
            grouped.setdefault(row.order_id, []).append(
                OrderItem(
                    product_id=row.product_id,
                    quantity=Quantity(row.quantity),
                    unit_price=Money(row.price, row.currency),
                    product_title=row.product_title,
                )
            )
        return grouped

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_domain(row: Row, items: list[OrderItem]) -> Order:
        order = Order(
            id=row.id,
            user_id=row.user_id,
            items=items,
            status=OrderStatus(row.status),
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )
        # The stored total is written once at insert; items are the source of truth.
        if items and row.total != order.total.amount:
            logger.error(
                "Order #%s stored total %s differs from its items' total %s",
                row.id, row.total, order.total.to_wire(),
            )
        return order
