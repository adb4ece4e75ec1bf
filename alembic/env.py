"""
Alembic environment for the rent payments service.

Only `payment_records` is managed here. Property, tenant and user tables
live in the same database but belong to another service; autogenerate must
not propose dropping them, hence `include_object`.
"""

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context
from rentpay.config.settings import get_settings
from rentpay.database.base import Base
from rentpay.domains.payments.infrastructure.persistence.sqlalchemy.models import (  # noqa: F401
    PaymentRecordModel,
)

config = context.config
config.set_main_option("sqlalchemy.url", get_settings().database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

COMPARE_OPTIONS = {"compare_type": True, "compare_server_default": True}


def include_object(obj, name, type_, reflected, compare_to):
    """Skip reflected tables that have no model in this service."""
    if type_ == "table" and reflected and compare_to is None:
        return False
    return True


def run_migrations_offline() -> None:
    """Emit SQL to stdout from the configured URL, without a DBAPI connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        include_object=include_object,
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
            transaction_per_migration=True,
            **COMPARE_OPTIONS,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
