"""SQLAlchemy implementation of PaymentRepository."""

from __future__ import annotations

from sqlalchemy import Connection, insert, select, update
from sqlalchemy.engine import Row

from storefront.domain.model.payment import PaymentAttempt, PaymentState
from storefront.domain.model.value_objects import Money
from storefront.domain.repository.payment_repository import PaymentRepository
from storefront.infrastructure.persistence.schema import as_utc, payment_attempts


class SqlPaymentRepository(PaymentRepository):

    def __init__(self, connection: Connection) -> None:
        self._conn = connection

    def get_by_reference(self, reference_id: str) -> PaymentAttempt | None:
        row = self._conn.execute(
            select(payment_attempts).where(payment_attempts.c.reference_id == reference_id)
        ).first()
        return self._to_domain(row) if row is not None else None

    def get_by_reference_for_update(self, reference_id: str) -> PaymentAttempt | None:
        row = self._conn.execute(
            select(payment_attempts)
            .where(payment_attempts.c.reference_id == reference_id)
            .with_for_update()
        ).first()
        return self._to_domain(row) if row is not None else None

    def list_by_order(self, order_id: int) -> list[PaymentAttempt]:
        rows = self._conn.execute(
            select(payment_attempts)
            .where(payment_attempts.c.order_id == order_id)
            .order_by(payment_attempts.c.id)
        )
        return [self._to_domain(row) for row in rows]

    def list_by_orders(self, order_ids: list[int]) -> dict[int, list[PaymentAttempt]]:
        if not order_ids:
            return {}
        rows = self._conn.execute(
            select(payment_attempts)
            .where(payment_attempts.c.order_id.in_(order_ids))
            .order_by(payment_attempts.c.id)
        )
        grouped: dict[int, list[PaymentAttempt]] = {}
        for row in rows:
            grouped.setdefault(row.order_id, []).append(self._to_domain(row))
        return grouped

    def has_successful(self, order_id: int) -> bool:
        row = self._conn.execute(
            select(payment_attempts.c.id)
            .where(
                payment_attempts.c.order_id == order_id,
                payment_attempts.c.state == PaymentState.SUCCESSFUL.value,
            )
            .limit(1)
        ).first()
        return row is not None

    def save(self, attempt: PaymentAttempt) -> None:
        if attempt.id is None:
            result = self._conn.execute(
                insert(payment_attempts).values(
                    reference_id=attempt.reference_id,
                    order_id=attempt.order_id,
                    amount=attempt.amount.amount,
                    currency=attempt.amount.currency,
                    payer_phone=attempt.payer_phone,
                    state=attempt.state.value,
                    created_at=attempt.created_at,
                    last_checked_at=attempt.last_checked_at,
                )
            )
            attempt.id = result.inserted_primary_key[0]
            return

        self._conn.execute(
            update(payment_attempts)
            .where(payment_attempts.c.id == attempt.id)
            .values(state=attempt.state.value, last_checked_at=attempt.last_checked_at)
        )

    @staticmethod
    def _to_domain(row: Row) -> PaymentAttempt:
        return PaymentAttempt(
            id=row.id,
            reference_id=row.reference_id,
            order_id=row.order_id,
            amount=Money(row.amount, row.currency),
            payer_phone=row.payer_phone,
            state=PaymentState(row.state),
            created_at=as_utc(row.created_at),
            last_checked_at=as_utc(row.last_checked_at),
        )
