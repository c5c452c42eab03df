"""CLI commands for the Order aggregate."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import click

from storefront.application.dto import Caller, OrderDTO, OrderLineSpec, Role
from storefront.application.order_service import OrderService
from storefront.domain.exceptions import DomainException
from storefront.infrastructure.bootstrap import engine, order_service, payment_gateway, settings


@contextmanager
def _service() -> Iterator[OrderService]:
    """Order service whose gateway HTTP client is closed on exit."""
    config = settings()
    with payment_gateway(config) as gateway:
        yield order_service(engine(config), gateway)


def _caller(user_id: int, admin: bool) -> Caller:
    return Caller(user_id=user_id, role=Role.ADMIN if admin else Role.USER)


def _parse_items(raw: str) -> list[OrderLineSpec]:
    """Parse '1:3,2:5' (product id : quantity) into OrderLineSpec list."""
    specs: list[OrderLineSpec] = []
    for pair in raw.split(","):
        pair = pair.strip()
        if ":" not in pair:
            raise click.BadParameter(
                f"Invalid item format '{pair}'. Expected 'ProductId:Quantity'."
            )
        pid_str, qty_str = pair.rsplit(":", 1)
        try:
            pid = int(pid_str)
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(f"Invalid item '{pair}'; both parts must be integers.")
        specs.append(OrderLineSpec(product_id=pid, quantity=qty))
    return specs


def _display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    click.echo(f"Order #{dto.id}  (status={dto.status})")
    click.echo(f"User:     {dto.user_id}")
    click.echo(f"Created:  {dto.created_at}")
    click.echo()
    click.echo(f"  {'Product':<30} {'Qty':>5} {'Price':>10} {'Total':>10}")
    click.echo(f"  {'-'*57}")
    for item in dto.items:
        click.echo(
            f"  {item.product_title:<30} {item.quantity:>5} {item.unit_price:>10} {item.line_total:>10}"
        )
    click.echo(f"  {'-'*57}")
    click.echo(f"  {'Order Total':<37} {dto.total:>20}")

    if dto.payments:
        click.echo()
        click.echo("  Payments:")
        for p in dto.payments:
            click.echo(f"    {p.reference_id}  {p.state:<10} {p.amount:>10}  {p.created_at}")


@click.command("place")
@click.option("--user", "user_id", required=True, type=int, help="Authenticated user id.")
@click.option("--items", required=True, help="Items as 'ProductId:Qty,ProductId:Qty'.")
@click.option("--total", default=None, help="Total the client displayed (checked, never stored).")
def order_place(user_id: int, items: str, total: str | None) -> None:
    """Place a new order, reserving stock for every item."""
    specs = _parse_items(items)

    try:
        with _service() as service:
            dto = service.place_order(_caller(user_id, False), specs, client_total=total)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo("Order created successfully")
    _display_order(dto)


@click.command("show")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to display.")
@click.option("--user", "user_id", required=True, type=int, help="Authenticated user id.")
@click.option("--admin", is_flag=True, default=False, help="Act as an administrator.")
def order_show(order_id: int, user_id: int, admin: bool) -> None:
    """Show details of an existing order."""
    try:
        with _service() as service:
            dto = service.get_order(order_id, _caller(user_id, admin))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)


@click.command("list")
@click.option("--user", "user_id", required=True, type=int, help="Authenticated user id.")
@click.option("--admin", is_flag=True, default=False, help="List every user's orders.")
def order_list(user_id: int, admin: bool) -> None:
    """List orders, newest first."""
    try:
        with _service() as service:
            orders = service.list_orders(_caller(user_id, admin))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not orders:
        click.echo("No orders found.")
        return

    click.echo(f"{'ID':<6} {'User':<6} {'Status':<12} {'Total':>12}  Created")
    click.echo("-" * 58)
    for dto in orders:
        click.echo(f"{dto.id:<6} {dto.user_id:<6} {dto.status:<12} {dto.total:>12}  {dto.created_at}")


@click.command("status")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to update.")
@click.option("--status", "new_status", required=True, help="pending|processing|shipped|delivered|cancelled")
@click.option("--user", "user_id", required=True, type=int, help="Authenticated user id.")
@click.option("--admin", is_flag=True, default=False, help="Act as an administrator.")
def order_status(order_id: int, new_status: str, user_id: int, admin: bool) -> None:
    """Change an order's status (administrators only)."""
    try:
        with _service() as service:
            dto = service.update_status(order_id, new_status, _caller(user_id, admin))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order #{dto.id} status updated to {dto.status}")
