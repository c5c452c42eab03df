"""Transaction scope shared by every repository of one operation.

A unit of work is entered with ``with``; everything done through its
repositories is one transaction.  Nothing is kept unless ``commit()`` is
called, and the underlying connection is released on every exit path.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from storefront.domain.repository.order_repository import OrderRepository
from storefront.domain.repository.payment_repository import PaymentRepository
from storefront.domain.repository.product_repository import ProductRepository


class UnitOfWork(ABC):

    products: ProductRepository
    orders: OrderRepository
    payments: PaymentRepository

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.rollback()

    @abstractmethod
    def commit(self) -> None:
        """Make every change of this scope durable."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard uncommitted changes. Safe to call after commit."""


UnitOfWorkFactory = Callable[[], UnitOfWork]
