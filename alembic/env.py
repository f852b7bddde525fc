from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from sqlalchemy import engine_from_config
from sqlalchemy import pool
from alembic import context

# --- Make sure project root is on sys.path so "import gamebase..." works ---
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Alembic Config object (reads alembic.ini for logging, etc.)
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# --- Import DB settings + models so autogenerate sees every table ---
from gamebase.config import DATABASE_URL  # noqa: E402
from gamebase.database import Base  # noqa: E402
from gamebase.models.base_template import BaseTemplate  # noqa: F401, E402
from gamebase.models.base_upgrade import BaseUpgrade  # noqa: F401, E402
from gamebase.models.coordinate_claim import CoordinateClaim  # noqa: F401, E402
from gamebase.models.player_base import PlayerBase  # noqa: F401, E402
from gamebase.models.player_base_counter import PlayerBaseCounter  # noqa: F401, E402
from gamebase.models.spawn_reservation import SpawnReservation  # noqa: F401, E402
from gamebase.models.upgrade_slot import UpgradeSlot  # noqa: F401, E402

target_metadata = Base.metadata


def _database_url() -> str:
    # An explicit sqlalchemy.url (tests, CLI -x overrides) wins over the app setting
    return config.get_main_option("sqlalchemy.url") or DATABASE_URL


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    ini_section = config.get_section(config.config_ini_section) or {}
    ini_section["sqlalchemy.url"] = _database_url()

    connectable = engine_from_config(
        ini_section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
