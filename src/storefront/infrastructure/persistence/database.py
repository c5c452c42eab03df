"""Engine construction and schema bootstrap."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from sqlalchemy import Engine, create_engine, event, insert, select
from sqlalchemy.engine import make_url

from storefront.infrastructure.persistence.schema import metadata, products

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT = 30.0

# Catalogue the storefront ships with on a fresh database.
SAMPLE_PRODUCTS = [
    ("Wireless Bluetooth Headphones", "99.99", 50, "electronics"),
    ("Smart Fitness Watch", "199.99", 30, "electronics"),
    ("Organic Cotton T-Shirt", "29.99", 100, "clothing"),
    ("Leather Wallet", "49.99", 75, "accessories"),
    ("Portable Phone Charger", "39.99", 60, "electronics"),
    ("Running Shoes", "129.99", 40, "footwear"),
]


def create_engine_from_url(url: str, echo: bool = False) -> Engine:
    """Build an engine whose transactions serialize writers per row.

    On PostgreSQL, repositories lock rows with SELECT ... FOR UPDATE.
    SQLite has no row locks, so every transaction there starts with
    BEGIN IMMEDIATE (one writer at a time) and waits on a busy timeout
    instead of failing straight away.
    """
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, echo=echo, pool_pre_ping=True)

    database = parsed.database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        url,
        echo=echo,
        connect_args={"timeout": SQLITE_BUSY_TIMEOUT, "check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # take over transaction control from the sqlite3 module
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def init_schema(engine: Engine) -> None:
    metadata.create_all(engine)
    logger.info("Database schema ready at %s", engine.url.render_as_string(hide_password=True))


def seed_sample_products(engine: Engine, currency: str = "USD") -> int:
    """Insert the sample catalogue; titles that already exist are skipped."""
    now = datetime.now(timezone.utc)
    inserted = 0
    with engine.begin() as conn:
        for title, price, stock, category in SAMPLE_PRODUCTS:
            exists = conn.execute(
                select(products.c.id).where(products.c.title == title)
            ).first()
            if exists is not None:
                continue
            conn.execute(
                insert(products).values(
                    title=title,
                    price=Decimal(price),
                    currency=currency,
                    stock=stock,
                    reserved=0,
                    category=category,
                    created_at=now,
                    updated_at=now,
                )
            )
            inserted += 1
    logger.info("Seeded %d sample product(s)", inserted)
    return inserted
