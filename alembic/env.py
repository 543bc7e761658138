"""Alembic configuration entrypoint for the marketplace schema."""

# ruff: noqa: F401

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from libs.common.config import get_settings
from libs.db.base import Base

# Import all models here so they are registered with Base.metadata
from services.store_service.models import (  # noqa: F401
    CartLine,
    OrderGroup,
    OrderLine,
    Product,
    Retailer,
    StockUnit,
)
from services.rewards_service.models import (  # noqa: F401
    DiscountCode,
    OrderDiscountCode,
    PointsBalance,
    PointsTransaction,
)
from services.payments_service.models import (  # noqa: F401
    CommissionRate,
    DestinationAccount,
    Payout,
    PayoutAccount,
    WebhookEvent,
)

settings = get_settings()

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

url = settings.DATABASE_URL.replace("%", "%%")
config.set_main_option("sqlalchemy.url", url)


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to the script output."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    connect_args = {}
    if url.startswith("postgresql+psycopg"):
        # Disable psycopg auto-prepared statements to avoid duplicate name errors
        connect_args["prepare_threshold"] = 0

    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        connect_args=connect_args,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
