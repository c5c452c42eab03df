"""SQLAlchemy unit of work: one connection, one transaction, per operation."""

from __future__ import annotations

import logging

from sqlalchemy import Connection, Engine
from sqlalchemy.exc import DBAPIError

from storefront.domain.exceptions import TransientError
from storefront.domain.repository.unit_of_work import UnitOfWork
from storefront.infrastructure.persistence.sql_order_repository import SqlOrderRepository
from storefront.infrastructure.persistence.sql_payment_repository import SqlPaymentRepository
from storefront.infrastructure.persistence.sql_product_repository import SqlProductRepository

logger = logging.getLogger(__name__)


class SqlUnitOfWork(UnitOfWork):
    """Checks a connection out of the engine's pool on enter and always
    returns it on exit.  Uncommitted work is rolled back; driver errors
    leave as TransientError."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._connection: Connection | None = None

    def __enter__(self) -> SqlUnitOfWork:
        try:
            self._connection = self._engine.connect()
            self._transaction = self._connection.begin()
        except DBAPIError as exc:
            self._close()
            raise TransientError(f"Could not open a database transaction: {exc.orig}") from exc
        self.products = SqlProductRepository(self._connection)
        self.orders = SqlOrderRepository(self._connection)
        self.payments = SqlPaymentRepository(self._connection)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.rollback()
        except DBAPIError:
            logger.exception("Rollback failed")
        finally:
            self._close()
        if isinstance(exc, DBAPIError):
            raise TransientError(
                f"Database operation failed, please retry: {exc.orig}"
            ) from exc

    def commit(self) -> None:
        self._transaction.commit()

    def rollback(self) -> None:
        if self._connection is not None and self._transaction.is_active:
            self._transaction.rollback()

    def _close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
