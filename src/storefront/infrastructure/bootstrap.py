"""Composition root: wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from sqlalchemy import Engine

from storefront.application.catalog import CatalogService
from storefront.application.order_service import OrderService
from storefront.domain.port.payment_gateway import PaymentGateway
from storefront.domain.repository.unit_of_work import UnitOfWorkFactory
from storefront.infrastructure.config import Settings
from storefront.infrastructure.payments.momo_gateway import MomoCollectionGateway
from storefront.infrastructure.persistence.database import create_engine_from_url
from storefront.infrastructure.persistence.sql_unit_of_work import SqlUnitOfWork


def settings() -> Settings:
    return Settings.from_env()


def engine(config: Settings) -> Engine:
    return create_engine_from_url(config.database_url)


def unit_of_work_factory(db: Engine) -> UnitOfWorkFactory:
    return lambda: SqlUnitOfWork(db)


def payment_gateway(config: Settings) -> MomoCollectionGateway:
    return MomoCollectionGateway(config)


def order_service(db: Engine, gateway: PaymentGateway) -> OrderService:
    return OrderService(uow_factory=unit_of_work_factory(db), gateway=gateway)


def catalog_service(config: Settings, db: Engine) -> CatalogService:
    return CatalogService(unit_of_work_factory(db), currency=config.store_currency)
