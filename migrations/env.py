from __future__ import annotations

import os
from logging.config import fileConfig
from sqlalchemy import engine_from_config
from sqlalchemy import pool
from alembic import context

# импортируем базовый класс и модели, чтобы автогенерация видела таблицы
from branch_logistics.db.base_class import Base
from branch_logistics.models.branch import Branch  # noqa: F401 - регистрируем модель
from branch_logistics.models.inventory import WarehouseMachine, WarehouseSim  # noqa: F401 - регистрируем модели
from branch_logistics.models.service_request import MaintenanceRequest  # noqa: F401 - регистрируем модель
from branch_logistics.models.transfer import TransferOrder, TransferOrderItem  # noqa: F401 - регистрируем модели
from branch_logistics.models.outbox import OutboxEvent  # noqa: F401 - регистрируем модель
from branch_logistics.core.config import settings

config = context.config


def _alembic_url() -> str:
    url = os.getenv("DATABASE_URL") or settings.database_url
    # Alembic работает синхронно; если в env asyncpg – заменим на psycopg2
    return url.replace("+asyncpg", "+psycopg2")


config.set_main_option("sqlalchemy.url", _alembic_url())

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
