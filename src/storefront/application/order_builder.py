"""Application service: build an order out of a cart.

The builder turns (product id, quantity) lines into a persisted pending
Order.  It runs inside a unit of work owned by the caller and never
commits: if any line cannot be reserved the exception propagates, the
caller's transaction rolls back, and neither stock nor order rows change.
"""

from __future__ import annotations

from storefront.application.dto import OrderLineSpec
from storefront.domain.exceptions import ValidationError
from storefront.domain.model.order import MAX_LINE_ITEMS, Order, OrderItem
from storefront.domain.model.value_objects import Quantity
from storefront.domain.repository.unit_of_work import UnitOfWork
from storefront.domain.service.inventory_ledger import InventoryLedger


def _is_positive_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class OrderBuilder:

    @staticmethod
    def validate(user_id: int, lines: list[OrderLineSpec]) -> None:
        """Reject a malformed request before any transaction is opened."""
        if not _is_positive_int(user_id):
            raise ValidationError("A valid user id is required")
        if not lines:
            raise ValidationError("Order items are required")
        if len(lines) > MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")
        for line in lines:
            if not _is_positive_int(line.product_id):
                raise ValidationError(f"Invalid product id {line.product_id!r}")
            # Quantity enforces a positive integer
            Quantity(line.quantity)

    def build(self, uow: UnitOfWork, user_id: int, lines: list[OrderLineSpec]) -> Order:
        """Reserve every line in input order, then insert order and items.

        Steps:
        1. For each line, reserve stock through the ledger (raises
           ProductNotFound / InsufficientStock naming the first bad line).
        2. Build OrderItems with the price read under the reservation lock.
        3. Let the Order aggregate validate and compute the total.
        4. Insert order + items in the same transaction.
        """
        self.validate(user_id, lines)
        ledger = InventoryLedger(uow.products)

        items: list[OrderItem] = []
        for line in lines:
            product = ledger.reserve(line.product_id, line.quantity)
            items.append(
                OrderItem(
                    product_id=line.product_id,
                    quantity=Quantity(line.quantity),
                    unit_price=product.price,  # <-- price snapshot
                    product_title=product.title,
                )
            )

        order = Order.create(user_id=user_id, items=items)
        uow.orders.save(order)
        return order
