"""Tests for order visibility and administrative status changes."""

import pytest

from storefront.application.dto import Caller, OrderLineSpec, Role
from storefront.application.order_service import OrderService
from storefront.domain.exceptions import (
    AuthorizationError,
    InvalidTransition,
    OrderNotFound,
    TransientError,
    ValidationError,
)
from storefront.domain.model.product import Product
from storefront.domain.model.value_objects import Money
from tests.fakes import FakePaymentGateway, FakeStore, FlakyUnitOfWorkFactory, uow_factory

ALICE = Caller(user_id=7)
BOB = Caller(user_id=8)
ADMIN = Caller(user_id=1, role=Role.ADMIN)


def _setup() -> tuple[OrderService, FakeStore]:
    store = FakeStore([
        Product(id=1, title="Classic Watch", price=Money.of("10.00"), stock=10),
        Product(id=2, title="Leather Wallet", price=Money.of("15.00"), stock=10),
    ])
    return OrderService(uow_factory(store), FakePaymentGateway(), read_retry_delay=0), store


def _place(service: OrderService, caller: Caller = ALICE, qty: int = 2) -> int:
    return service.place_order(caller, [OrderLineSpec(1, qty)]).id


class TestGetOrder:

    def test_owner_sees_order(self):
        service, _ = _setup()
        order_id = _place(service)
        dto = service.get_order(order_id, ALICE)
        assert dto.id == order_id
        assert dto.items[0].product_title == "Classic Watch"
        assert dto.payments == []

    def test_other_user_gets_not_found(self):
        service, _ = _setup()
        order_id = _place(service)
        with pytest.raises(OrderNotFound):
            service.get_order(order_id, BOB)

    def test_admin_sees_any_order(self):
        service, _ = _setup()
        order_id = _place(service)
        assert service.get_order(order_id, ADMIN).user_id == 7

    def test_missing_order(self):
        service, _ = _setup()
        with pytest.raises(OrderNotFound, match="#42"):
            service.get_order(42, ADMIN)


class TestListOrders:

    def test_user_sees_own_orders_newest_first(self):
        service, _ = _setup()
        first = _place(service)
        _place(service, BOB)
        second = _place(service)
        assert [o.id for o in service.list_orders(ALICE)] == [second, first]

    def test_admin_sees_all(self):
        service, _ = _setup()
        _place(service)
        _place(service, BOB)
        assert len(service.list_orders(ADMIN)) == 2


class TestReadRetry:

    def test_read_retried_once_on_transient_error(self):
        _, store = _setup()
        service = OrderService(uow_factory(store), FakePaymentGateway(), read_retry_delay=0)
        order_id = _place(service)

        flaky = FlakyUnitOfWorkFactory(store, failures=1)
        retrying = OrderService(flaky, FakePaymentGateway(), read_retry_delay=0)
        assert retrying.get_order(order_id, ALICE).id == order_id
        assert flaky.calls == 2

    def test_second_failure_propagates(self):
        _, store = _setup()
        flaky = FlakyUnitOfWorkFactory(store, failures=2)
        service = OrderService(flaky, FakePaymentGateway(), read_retry_delay=0)
        with pytest.raises(TransientError):
            service.list_orders(ALICE)

    def test_writes_are_not_retried(self):
        _, store = _setup()
        flaky = FlakyUnitOfWorkFactory(store, failures=1)
        service = OrderService(flaky, FakePaymentGateway(), read_retry_delay=0)
        with pytest.raises(TransientError):
            service.place_order(ALICE, [OrderLineSpec(1, 1)])
        assert flaky.calls == 1


class TestUpdateStatus:

    def test_non_admin_rejected(self):
        service, _ = _setup()
        order_id = _place(service)
        with pytest.raises(AuthorizationError):
            service.update_status(order_id, "processing", ALICE)

    def test_full_lifecycle(self):
        service, _ = _setup()
        order_id = _place(service)
        for status in ("processing", "shipped", "delivered"):
            dto = service.update_status(order_id, status, ADMIN)
            assert dto.status == status

    def test_shipping_settles_reservation(self):
        service, store = _setup()
        order_id = _place(service, qty=3)
        assert store.products[1].reserved == 3
        service.update_status(order_id, "processing", ADMIN)
        service.update_status(order_id, "shipped", ADMIN)
        assert store.products[1].reserved == 0
        assert store.products[1].stock == 7

    def test_delivered_to_cancelled_rejected(self):
        service, _ = _setup()
        order_id = _place(service)
        for status in ("processing", "shipped", "delivered"):
            service.update_status(order_id, status, ADMIN)
        with pytest.raises(InvalidTransition):
            service.update_status(order_id, "cancelled", ADMIN)
        assert service.get_order(order_id, ADMIN).status == "delivered"

    def test_skipping_a_step_rejected(self):
        service, _ = _setup()
        order_id = _place(service)
        with pytest.raises(InvalidTransition, match="pending to shipped"):
            service.update_status(order_id, "shipped", ADMIN)

    def test_cancel_does_not_restock(self):
        service, store = _setup()
        order_id = _place(service, qty=2)
        service.update_status(order_id, "cancelled", ADMIN)
        assert store.products[1].stock == 8
        assert store.products[1].reserved == 2

    def test_unknown_status_value(self):
        service, _ = _setup()
        order_id = _place(service)
        with pytest.raises(ValidationError, match="Invalid status"):
            service.update_status(order_id, "lost", ADMIN)

    def test_missing_order(self):
        service, _ = _setup()
        with pytest.raises(OrderNotFound):
            service.update_status(404, "processing", ADMIN)
