"""CLI commands for the Product aggregate."""

from __future__ import annotations

import click

from storefront.application.catalog import CatalogService
from storefront.domain.exceptions import DomainException
from storefront.infrastructure.bootstrap import catalog_service, engine, settings


def _catalog() -> CatalogService:
    config = settings()
    return catalog_service(config, engine(config))


@click.command("add")
@click.option("--title", required=True, help="Product title.")
@click.option("--price", required=True, help="Price (e.g. 15.00).")
@click.option("--stock", default=0, type=int, help="Initial stock.")
@click.option("--category", default=None, help="Category.")
def product_add(title: str, price: str, stock: int, category: str | None) -> None:
    """Add a new product to the catalog."""
    try:
        product = _catalog().add_product(title=title, price=price, stock=stock, category=category)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Product #{product.id} '{product.title}' added at {product.price}")


@click.command("list")
def product_list() -> None:
    """List all products in the catalog."""
    try:
        lines = _catalog().list_stock()
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not lines:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':<6} {'Title':<30} {'Price':>10} {'Category':<12}")
    click.echo("-" * 61)
    for p in lines:
        click.echo(f"{p.product_id:<6} {p.title:<30} {p.price:>10} {p.category or '':<12}")


@click.command("update")
@click.option("--id", "product_id", required=True, type=int, help="Product ID.")
@click.option("--price", required=True, help="New price (e.g. 29.99).")
def product_update(product_id: int, price: str) -> None:
    """Update a product's price."""
    try:
        product = _catalog().update_price(product_id=product_id, new_price=price)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Product #{product_id} price updated to {product.price}")
