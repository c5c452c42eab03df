import logging

import click

from storefront.infrastructure.bootstrap import settings
from storefront.infrastructure.cli.db_commands import db_init
from storefront.infrastructure.cli.inventory_commands import (
    inventory_release,
    inventory_restock,
    inventory_show,
)
from storefront.infrastructure.cli.order_commands import (
    order_list,
    order_place,
    order_show,
    order_status,
)
from storefront.infrastructure.cli.payment_commands import (
    payment_apply,
    payment_initiate,
    payment_refresh,
)
from storefront.infrastructure.cli.product_commands import (
    product_add,
    product_list,
    product_update,
)


@click.group()
def cli() -> None:
    """Storefront order core"""
    logging.basicConfig(
        level=settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.group()
def db() -> None:
    """Manage the database."""


@cli.group()
def order() -> None:
    """Manage orders."""


@cli.group()
def product() -> None:
    """Manage products."""


@cli.group()
def inventory() -> None:
    """Manage inventory."""


@cli.group()
def payment() -> None:
    """Manage payments."""


# Register subcommands
db.add_command(db_init)
order.add_command(order_list)
order.add_command(order_place)
order.add_command(order_show)
order.add_command(order_status)
product.add_command(product_add)
product.add_command(product_list)
product.add_command(product_update)
inventory.add_command(inventory_release)
inventory.add_command(inventory_restock)
inventory.add_command(inventory_show)
payment.add_command(payment_apply)
payment.add_command(payment_initiate)
payment.add_command(payment_refresh)
