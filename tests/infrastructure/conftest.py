import pytest

from storefront.application.catalog import CatalogService
from storefront.application.order_service import OrderService
from storefront.infrastructure.bootstrap import unit_of_work_factory
from storefront.infrastructure.persistence.database import create_engine_from_url, init_schema
from tests.fakes import FakePaymentGateway


@pytest.fixture
def engine(tmp_path):
    db = create_engine_from_url(f"sqlite:///{tmp_path / 'store.db'}")
    init_schema(db)
    yield db
    db.dispose()


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def service(engine, gateway):
    return OrderService(unit_of_work_factory(engine), gateway, read_retry_delay=0)


@pytest.fixture
def catalog(engine):
    return CatalogService(unit_of_work_factory(engine))
