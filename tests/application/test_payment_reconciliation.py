"""Tests for payment initiation and reconciliation through OrderService."""

import logging
import threading

import pytest

from storefront.application.dto import Caller, OrderLineSpec, Role
from storefront.application.order_service import OrderService
from storefront.domain.exceptions import (
    InvalidTransition,
    OrderAlreadyPaid,
    OrderNotFound,
    PaymentAttemptNotFound,
    PaymentGatewayError,
    TransientError,
    ValidationError,
)
from storefront.domain.model.payment import PaymentState
from storefront.domain.model.product import Product
from storefront.domain.model.value_objects import Money
from storefront.domain.port.payment_gateway import GatewayStatus
from tests.fakes import FakePaymentGateway, FakeStore, uow_factory

ALICE = Caller(user_id=7)
BOB = Caller(user_id=8)
ADMIN = Caller(user_id=1, role=Role.ADMIN)
PHONE = "+250 788 123 456"


def _setup() -> tuple[OrderService, FakeStore, FakePaymentGateway, int]:
    """Service with one pending $50.00 order owned by Alice."""
    store = FakeStore([
        Product(id=1, title="Classic Watch", price=Money.of("10.00"), stock=10),
        Product(id=2, title="Leather Wallet", price=Money.of("15.00"), stock=10),
    ])
    gateway = FakePaymentGateway()
    service = OrderService(uow_factory(store), gateway)
    order = service.place_order(ALICE, [OrderLineSpec(1, 2), OrderLineSpec(2, 2)])
    return service, store, gateway, order.id


class TestInitiatePayment:

    def test_records_pending_attempt_and_calls_gateway(self):
        service, store, gateway, order_id = _setup()
        dto = service.initiate_payment(order_id, ALICE, PHONE)
        assert dto.state == "PENDING"
        assert dto.amount == "$50.00"
        assert dto.payer_phone == "250788123456"
        assert store.payments[dto.reference_id].order_id == order_id
        [request] = gateway.requests
        assert request["reference_id"] == dto.reference_id
        assert request["amount"] == Money.of("50.00")
        assert request["external_id"] == str(order_id)

    def test_explicit_matching_amount(self):
        service, _, _, order_id = _setup()
        assert service.initiate_payment(order_id, ALICE, PHONE, "50").amount == "$50.00"

    def test_mismatched_amount_rejected(self, caplog):
        service, store, gateway, order_id = _setup()
        with caplog.at_level(logging.WARNING):
            with pytest.raises(ValidationError, match="does not match order total"):
                service.initiate_payment(order_id, ALICE, PHONE, "49.99")
        assert store.payments == {}
        assert gateway.requests == []
        assert "asked for 49.99" in caplog.text

    def test_other_users_order_is_not_found(self):
        service, _, _, order_id = _setup()
        with pytest.raises(OrderNotFound):
            service.initiate_payment(order_id, BOB, PHONE)

    def test_admin_may_initiate(self):
        service, _, _, order_id = _setup()
        assert service.initiate_payment(order_id, ADMIN, PHONE).state == "PENDING"

    def test_missing_phone(self):
        service, _, _, order_id = _setup()
        with pytest.raises(ValidationError, match="phone number"):
            service.initiate_payment(order_id, ALICE, "")

    def test_already_paid_order_rejected(self):
        service, _, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        service.apply_payment_status(ref, "SUCCESSFUL")
        with pytest.raises(OrderAlreadyPaid):
            service.initiate_payment(order_id, ALICE, PHONE)

    def test_cancelled_order_rejected(self):
        service, _, _, order_id = _setup()
        service.update_status(order_id, "cancelled", ADMIN)
        with pytest.raises(InvalidTransition):
            service.initiate_payment(order_id, ALICE, PHONE)

    def test_retry_after_failure_creates_new_attempt(self):
        service, store, _, order_id = _setup()
        first = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        service.apply_payment_status(first, "FAILED")
        second = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        assert first != second
        assert len(service.get_order(order_id, ALICE).payments) == 2

    def test_gateway_unavailable_keeps_attempt_pending(self):
        service, store, gateway, order_id = _setup()
        gateway.fail_with = PaymentGatewayError("timed out", retryable=True)
        with pytest.raises(TransientError):
            service.initiate_payment(order_id, ALICE, PHONE)
        [attempt] = store.payments.values()
        assert attempt.state is PaymentState.PENDING

    def test_gateway_rejection_marks_attempt_failed(self):
        service, store, gateway, order_id = _setup()
        gateway.fail_with = PaymentGatewayError("HTTP 400", retryable=False)
        with pytest.raises(PaymentGatewayError):
            service.initiate_payment(order_id, ALICE, PHONE)
        [attempt] = store.payments.values()
        assert attempt.state is PaymentState.FAILED
        assert service.get_order(order_id, ALICE).status == "pending"


class TestApplyPaymentStatus:

    def test_success_moves_order_to_processing(self):
        service, _, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        dto = service.apply_payment_status(ref, "successful", "50.00")
        assert dto.state == "SUCCESSFUL"
        assert service.get_order(order_id, ALICE).status == "processing"

    def test_duplicate_success_is_noop(self):
        service, store, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        service.apply_payment_status(ref, "SUCCESSFUL")
        commits = store.commits
        before = store.snapshot()

        dto = service.apply_payment_status(ref, "SUCCESSFUL")

        assert dto.state == "SUCCESSFUL"
        assert store.snapshot() == before
        assert store.commits == commits

    def test_failure_then_success_is_ignored(self, caplog):
        service, _, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        service.apply_payment_status(ref, "FAILED")
        with caplog.at_level(logging.ERROR):
            dto = service.apply_payment_status(ref, "SUCCESSFUL")
        assert dto.state == "FAILED"
        assert "Reconciliation conflict" in caplog.text
        assert service.get_order(order_id, ALICE).status == "pending"

    def test_failure_does_not_release_stock(self):
        service, store, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        service.apply_payment_status(ref, "FAILED")
        assert store.products[1].reserved == 2

    def test_pending_report_touches_last_checked(self):
        service, _, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        dto = service.apply_payment_status(ref, "PENDING")
        assert dto.state == "PENDING"
        assert dto.last_checked_at is not None

    def test_amount_mismatch_leaves_attempt_unchanged(self, caplog):
        service, _, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        with caplog.at_level(logging.ERROR):
            dto = service.apply_payment_status(ref, "SUCCESSFUL", "5.00")
        assert dto.state == "PENDING"
        assert "Amount mismatch" in caplog.text
        assert service.get_order(order_id, ALICE).status == "pending"

    def test_success_on_cancelled_order_keeps_status(self, caplog):
        service, _, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        service.update_status(order_id, "cancelled", ADMIN)
        with caplog.at_level(logging.WARNING):
            dto = service.apply_payment_status(ref, "SUCCESSFUL")
        assert dto.state == "SUCCESSFUL"
        assert service.get_order(order_id, ADMIN).status == "cancelled"
        assert "status left unchanged" in caplog.text

    def test_second_successful_attempt_is_ignored(self):
        service, store, _, order_id = _setup()
        first = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        service.apply_payment_status(first, "FAILED")
        second = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        service.apply_payment_status(second, "SUCCESSFUL")

        # Force a stale pending attempt for the same order.
        store.payments[first].state = PaymentState.PENDING
        dto = service.apply_payment_status(first, "SUCCESSFUL")
        assert dto.state == "PENDING"
        successful = [a for a in store.payments.values() if a.is_successful]
        assert len(successful) == 1

    def test_unknown_reference(self):
        service, _, _, _ = _setup()
        with pytest.raises(PaymentAttemptNotFound):
            service.apply_payment_status("nope", "SUCCESSFUL")

    def test_unknown_state(self):
        service, _, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        with pytest.raises(ValidationError, match="Unknown payment state"):
            service.apply_payment_status(ref, "REVERSED")

    def test_concurrent_duplicate_deliveries(self):
        service, store, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        barrier = threading.Barrier(5)
        states: list[str] = []

        def deliver() -> None:
            barrier.wait()
            states.append(service.apply_payment_status(ref, "SUCCESSFUL").state)

        threads = [threading.Thread(target=deliver) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert states == ["SUCCESSFUL"] * 5
        assert store.orders[order_id].status.value == "processing"


class TestRefreshPayment:

    def test_applies_polled_status(self):
        service, _, gateway, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        gateway.statuses[ref] = GatewayStatus(ref, PaymentState.SUCCESSFUL, Money.of("50.00"))
        assert service.refresh_payment(ref).state == "SUCCESSFUL"
        assert service.get_order(order_id, ALICE).status == "processing"

    def test_still_pending(self):
        service, _, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        dto = service.refresh_payment(ref)
        assert dto.state == "PENDING"
        assert dto.last_checked_at is not None

    def test_terminal_attempt_not_polled(self):
        service, _, gateway, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        service.apply_payment_status(ref, "FAILED")
        gateway.fail_with = AssertionError("gateway must not be called")
        assert service.refresh_payment(ref).state == "FAILED"

    def test_gateway_outage_is_transient(self):
        service, _, gateway, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        gateway.fail_with = PaymentGatewayError("HTTP 503", retryable=True)
        with pytest.raises(TransientError):
            service.refresh_payment(ref)

    def test_unknown_reference(self):
        service, _, _, _ = _setup()
        with pytest.raises(PaymentAttemptNotFound):
            service.refresh_payment("missing")


class TestOneSuccessfulAttemptPerOrder:

    def test_order_row_is_locked_before_the_attempt(self):
        service, store, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        store.locks.clear()

        service.apply_payment_status(ref, "SUCCESSFUL")

        assert store.locks == [("order", order_id), ("payment", ref)]

    def test_two_attempts_reported_successful_at_once(self):
        service, store, _, order_id = _setup()
        refs = [service.initiate_payment(order_id, ALICE, PHONE).reference_id for _ in range(2)]
        barrier = threading.Barrier(2)

        def deliver(ref: str) -> None:
            barrier.wait()
            service.apply_payment_status(ref, "SUCCESSFUL")

        threads = [threading.Thread(target=deliver, args=(ref,)) for ref in refs]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        states = sorted(store.payments[ref].state.value for ref in refs)
        assert states == ["PENDING", "SUCCESSFUL"]
        assert store.orders[order_id].status.value == "processing"


class TestAmountPrecision:

    def test_sub_cent_report_is_a_mismatch(self, caplog):
        service, _, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        with caplog.at_level(logging.ERROR):
            dto = service.apply_payment_status(ref, "SUCCESSFUL", "49.995")
        assert dto.state == "PENDING"
        assert "Amount mismatch" in caplog.text
        assert service.get_order(order_id, ALICE).status == "pending"

    def test_trailing_zeros_still_match(self):
        service, _, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        assert service.apply_payment_status(ref, "SUCCESSFUL", "50.000").state == "SUCCESSFUL"

    def test_sub_cent_initiate_amount_rejected(self):
        service, store, gateway, order_id = _setup()
        with pytest.raises(ValidationError, match="does not match order total"):
            service.initiate_payment(order_id, ALICE, PHONE, "50.004")
        assert store.payments == {}
        assert gateway.requests == []

    @pytest.mark.parametrize("amount", ["1e30", "99999999999", "-5", "NaN"])
    def test_out_of_range_report_rejected(self, amount):
        service, _, _, order_id = _setup()
        ref = service.initiate_payment(order_id, ALICE, PHONE).reference_id
        with pytest.raises(ValidationError, match="Invalid payment amount"):
            service.apply_payment_status(ref, "SUCCESSFUL", amount)

    def test_out_of_range_initiate_amount_rejected(self):
        service, _, _, order_id = _setup()
        with pytest.raises(ValidationError, match="Invalid payment amount"):
            service.initiate_payment(order_id, ALICE, PHONE, "1e30")


class TestListOrdersPayments:

    def test_attempts_loaded_in_one_query(self):
        service, store, _, order_id = _setup()
        service.initiate_payment(order_id, ALICE, PHONE)
        service.place_order(ALICE, [OrderLineSpec(1, 1)])
        service.place_order(ALICE, [OrderLineSpec(2, 1)])
        store.payment_queries = 0

        orders = service.list_orders(ALICE)

        assert store.payment_queries == 1
        assert [len(o.payments) for o in orders] == [0, 0, 1]
