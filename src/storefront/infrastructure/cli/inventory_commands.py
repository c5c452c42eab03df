"""CLI commands for inventory management."""

from __future__ import annotations

import click

from storefront.domain.exceptions import DomainException
from storefront.infrastructure.cli.product_commands import _catalog


@click.command("show")
def inventory_show() -> None:
    """Show current inventory levels."""
    try:
        lines = _catalog().list_stock()
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not lines:
        click.echo("No inventory records found.")
        return

    click.echo(f"{'ID':<6} {'Product':<30} {'Stock':>8} {'Reserved':>10}")
    click.echo("-" * 57)
    for line in lines:
        click.echo(f"{line.product_id:<6} {line.title:<30} {line.stock:>8} {line.reserved:>10}")


@click.command("restock")
@click.option("--product", "product_id", required=True, type=int, help="Product ID.")
@click.option("--quantity", required=True, type=int, help="Units to add to stock.")
def inventory_restock(product_id: int, quantity: int) -> None:
    """Add units to a product's stock."""
    try:
        _catalog().restock(product_id, quantity)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Added {quantity} unit(s) to product #{product_id}")


@click.command("release")
@click.option("--product", "product_id", required=True, type=int, help="Product ID.")
@click.option("--quantity", required=True, type=int, help="Reserved units to put back.")
def inventory_release(product_id: int, quantity: int) -> None:
    """Return reserved units to stock (e.g. for an abandoned order)."""
    try:
        released = _catalog().release(product_id, quantity)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Released {released} unit(s) of product #{product_id}")
