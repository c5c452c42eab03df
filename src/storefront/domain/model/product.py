"""Product aggregate.

Products live independently of orders. They have their own lifecycle:
prices change, products are added and removed from the catalog.
"""

from __future__ import annotations

from dataclasses import dataclass

from storefront.domain.exceptions import ValidationError
from storefront.domain.model.value_objects import Money


@dataclass
class Product:
    """A product in the catalog.

    ``stock`` is what can still be sold; ``reserved`` is what placed orders
    are holding until they ship.  Both counters belong to the inventory
    ledger; the catalog only edits title, price and category.
    """

    id: int | None
    title: str
    price: Money
    stock: int = 0
    reserved: int = 0
    category: str | None = None

    def __post_init__(self) -> None:
        if self.stock < 0:
            raise ValidationError(f"Stock cannot be negative, got {self.stock}")
        if self.reserved < 0:
            raise ValidationError(f"Reserved cannot be negative, got {self.reserved}")

    def has_stock_for(self, quantity: int) -> bool:
        return self.stock >= quantity

    def update_price(self, new_price: Money) -> None:
        """Change the product price.

        This does NOT affect any existing orders because order items
        capture a price snapshot at creation time.
        """
        if new_price.amount <= 0:
            raise ValidationError("Product price must be greater than zero")
        self.price = new_price.quantized()
