"""Application service: catalog and stock administration.

Stands in for the catalog-management collaborator: it creates products,
edits their prices and lets an operator restock or release inventory.
Stock counters are still only touched through the InventoryLedger.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from storefront.domain.exceptions import ProductNotFound, ValidationError
from storefront.domain.model.product import Product
from storefront.domain.model.value_objects import DEFAULT_CURRENCY, Money
from storefront.domain.repository.unit_of_work import UnitOfWorkFactory
from storefront.domain.service.inventory_ledger import InventoryLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockLineDTO:
    product_id: int
    title: str
    price: str
    stock: int
    reserved: int
    category: str | None


class CatalogService:

    def __init__(self, uow_factory: UnitOfWorkFactory, currency: str = DEFAULT_CURRENCY) -> None:
        self._uow_factory = uow_factory
        self._currency = currency

    def add_product(
        self,
        title: str,
        price: str,
        stock: int = 0,
        category: str | None = None,
    ) -> Product:
        """Add a new product to the catalog."""
        if not title or not title.strip():
            raise ValidationError("Product title is required")
        money = Money.of(price, self._currency)
        if money.amount <= 0:
            raise ValidationError("Product price must be greater than zero")
        if stock < 0:
            raise ValidationError("Stock cannot be negative")

        product = Product(
            id=None,
            title=title.strip(),
            price=money.quantized(),
            stock=stock,
            category=category,
        )
        with self._uow_factory() as uow:
            uow.products.save(product)
            uow.commit()
        logger.info("Product #%s '%s' added at %s", product.id, product.title, product.price)
        return product

    def update_price(self, product_id: int, new_price: str) -> Product:
        """Update a product's price.

        This does NOT affect any existing orders; their items captured a
        price snapshot at creation time.
        """
        with self._uow_factory() as uow:
            product = uow.products.get_for_update(product_id)
            if product is None:
                raise ProductNotFound(product_id)
            product.update_price(Money.of(new_price, product.price.currency))
            uow.products.save(product)
            uow.commit()
        return product

    def list_stock(self) -> list[StockLineDTO]:
        with self._uow_factory() as uow:
            products = uow.products.list_all()
        return [
            StockLineDTO(
                product_id=p.id,  # type: ignore[arg-type]
                title=p.title,
                price=str(p.price),
                stock=p.stock,
                reserved=p.reserved,
                category=p.category,
            )
            for p in products
        ]

    def restock(self, product_id: int, quantity: int) -> None:
        with self._uow_factory() as uow:
            InventoryLedger(uow.products).restock(product_id, quantity)
            uow.commit()
        logger.info("Restocked product #%s with %d unit(s)", product_id, quantity)

    def release(self, product_id: int, quantity: int) -> int:
        """Operator-driven release of reserved stock, e.g. for an abandoned order."""
        with self._uow_factory() as uow:
            released = InventoryLedger(uow.products).release(product_id, quantity)
            uow.commit()
        logger.info("Released %d unit(s) of product #%s back to stock", released, product_id)
        return released
