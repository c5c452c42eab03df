"""CLI commands for mobile-money payments."""

from __future__ import annotations

import click

from storefront.application.dto import Caller, PaymentAttemptDTO, Role
from storefront.domain.exceptions import DomainException
from storefront.infrastructure.cli.order_commands import _service


def _display_payment(dto: PaymentAttemptDTO) -> None:
    click.echo(f"Payment {dto.reference_id}  (state={dto.state})")
    click.echo(f"Order:    #{dto.order_id}")
    click.echo(f"Amount:   {dto.amount}")
    click.echo(f"Payer:    {dto.payer_phone}")
    if dto.last_checked_at:
        click.echo(f"Checked:  {dto.last_checked_at}")


@click.command("initiate")
@click.option("--order", "order_id", required=True, type=int, help="Order to pay for.")
@click.option("--user", "user_id", required=True, type=int, help="Authenticated user id.")
@click.option("--admin", is_flag=True, default=False, help="Act as an administrator.")
@click.option("--phone", required=True, help="Payer's mobile-money number.")
@click.option("--amount", default=None, help="Amount to collect (defaults to the order total).")
def payment_initiate(order_id: int, user_id: int, admin: bool, phone: str, amount: str | None) -> None:
    """Ask the payer to approve a mobile-money payment."""
    caller = Caller(user_id=user_id, role=Role.ADMIN if admin else Role.USER)
    try:
        with _service() as service:
            dto = service.initiate_payment(order_id, caller, phone, amount)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_payment(dto)


@click.command("apply")
@click.option("--reference", required=True, help="Gateway reference id.")
@click.option("--state", required=True, help="PENDING|SUCCESSFUL|FAILED")
@click.option("--amount", default=None, help="Amount the gateway reported.")
def payment_apply(reference: str, state: str, amount: str | None) -> None:
    """Apply a payment outcome delivered by the gateway."""
    try:
        with _service() as service:
            dto = service.apply_payment_status(reference, state, amount)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_payment(dto)


@click.command("refresh")
@click.option("--reference", required=True, help="Gateway reference id.")
def payment_refresh(reference: str) -> None:
    """Poll the gateway for a payment and apply the result."""
    try:
        with _service() as service:
            dto = service.refresh_payment(reference)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_payment(dto)
