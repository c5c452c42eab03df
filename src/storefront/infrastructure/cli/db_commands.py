"""CLI commands for database setup."""

from __future__ import annotations

import click

from storefront.infrastructure.bootstrap import engine, settings
from storefront.infrastructure.persistence.database import init_schema, seed_sample_products


@click.command("init")
@click.option("--seed", is_flag=True, default=False, help="Insert the sample catalogue.")
def db_init(seed: bool) -> None:
    """Create tables (and optionally sample products)."""
    config = settings()
    db = engine(config)
    init_schema(db)
    click.echo("Database initialized.")
    if seed:
        count = seed_sample_products(db, currency=config.store_currency)
        click.echo(f"Seeded {count} sample product(s).")
