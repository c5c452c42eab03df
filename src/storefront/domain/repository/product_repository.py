"""Abstract repository for Product aggregate.

Defined in the domain layer so the domain never depends on
infrastructure.  Implementations work inside the caller's unit of work;
the stock primitives below are only called by the inventory ledger.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from storefront.domain.model.product import Product


class ProductRepository(ABC):

    @abstractmethod
    def get_by_id(self, product_id: int) -> Product | None:
        """Return a product by its ID, or None if not found."""

    @abstractmethod
    def get_for_update(self, product_id: int) -> Product | None:
        """Like get_by_id, but lock the row until the transaction ends."""

    @abstractmethod
    def list_all(self) -> list[Product]:
        """Return every product in the catalog."""

    @abstractmethod
    def save(self, product: Product) -> None:
        """Insert a new product or update its catalog fields.

        Never writes ``stock`` or ``reserved`` of an existing row.
        """

    # --- Stock primitives -----------------------------------------------------

    @abstractmethod
    def try_decrement_stock(self, product_id: int, quantity: int) -> bool:
        """Move ``quantity`` from stock to reserved iff stock >= quantity.

        Must be a single compare-and-set against the stored counter.
        Returns False when the guard did not hold.
        """

    @abstractmethod
    def return_to_stock(self, product_id: int, quantity: int) -> None:
        """Move ``quantity`` from reserved back to stock."""

    @abstractmethod
    def drop_reserved(self, product_id: int, quantity: int) -> None:
        """Remove ``quantity`` from reserved without touching stock."""

    @abstractmethod
    def add_stock(self, product_id: int, quantity: int) -> None:
        """Increase stock by ``quantity``."""
