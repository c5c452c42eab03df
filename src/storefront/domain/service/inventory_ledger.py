"""Domain service: Inventory Ledger.

The ledger is the only writer of a product's ``stock`` and ``reserved``
counters.  It works inside the caller's unit of work, so a reservation
made for one line of an order disappears together with the order if the
transaction rolls back.

Reservation is a guarded decrement: the repository only applies it while
``stock >= quantity`` holds in the store itself, so two transactions racing
for the last unit cannot both win even if both read the same stock level.
"""

from __future__ import annotations

import logging

from storefront.domain.exceptions import InsufficientStock, ProductNotFound, ValidationError
from storefront.domain.model.product import Product
from storefront.domain.repository.product_repository import ProductRepository

logger = logging.getLogger(__name__)


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError(f"Quantity must be a positive integer, got {quantity!r}")


class InventoryLedger:

    def __init__(self, products: ProductRepository) -> None:
        self._products = products

    def reserve(self, product_id: int, quantity: int) -> Product:
        """Take ``quantity`` units of a product out of stock.

        Returns the product as read under the row lock, so the caller can
        capture the price that was current at reservation time.
        """
        _require_positive(quantity)
        product = self._products.get_for_update(product_id)
        if product is None:
            raise ProductNotFound(product_id)

        if not product.has_stock_for(quantity):
            raise InsufficientStock(product_id, product.title, quantity, product.stock)

        if not self._products.try_decrement_stock(product_id, quantity):
            # Lost a race with another transaction between read and write.
            current = self._products.get_by_id(product_id)
            available = current.stock if current is not None else 0
            raise InsufficientStock(product_id, product.title, quantity, available)

        product.stock -= quantity
        product.reserved += quantity
        return product

    def release(self, product_id: int, quantity: int) -> int:
        """Put reserved units back into stock (compensating action).

        Never releases more than is reserved: an over-release is clamped
        and logged as an anomaly.  Returns the number of units released.
        """
        _require_positive(quantity)
        product = self._products.get_for_update(product_id)
        if product is None:
            raise ProductNotFound(product_id)

        released = min(quantity, product.reserved)
        if released < quantity:
            logger.warning(
                "Over-release for product %s: asked to release %d, only %d reserved",
                product_id, quantity, product.reserved,
            )
        if released:
            self._products.return_to_stock(product_id, released)
        return released

    def settle(self, product_id: int, quantity: int) -> int:
        """Reserved units leave the ledger for good (the order shipped)."""
        _require_positive(quantity)
        product = self._products.get_for_update(product_id)
        if product is None:
            raise ProductNotFound(product_id)

        settled = min(quantity, product.reserved)
        if settled < quantity:
            logger.warning(
                "Settling %d of product %s but only %d reserved",
                quantity, product_id, product.reserved,
            )
        if settled:
            self._products.drop_reserved(product_id, settled)
        return settled

    def restock(self, product_id: int, quantity: int) -> None:
        """Add new units to stock."""
        _require_positive(quantity)
        if self._products.get_for_update(product_id) is None:
            raise ProductNotFound(product_id)
        self._products.add_stock(product_id, quantity)
