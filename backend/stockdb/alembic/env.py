# backend/stockdb/alembic/env.py

from __future__ import annotations

import os
import sys
from dataclasses import replace
from logging.config import fileConfig

from alembic import context

# backend/ on sys.path for the stockdb imports below.
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from stockdb.config import Settings  # noqa: E402
from stockdb.database import Base, create_db_engine  # noqa: E402

# Register every table on Base.metadata.
from stockdb.apps.catalog import models as catalog_models  # noqa: F401, E402
from stockdb.apps.inventory import models as inventory_models  # noqa: F401, E402

target_metadata = Base.metadata


def _resolve_url() -> str:
    """
    Prefer sqlalchemy.url from alembic.ini unless it is the template
    placeholder, then fall back to DATABASE_URL via Settings.
    """
    url = (config.get_main_option("sqlalchemy.url") or "").strip()
    if not url or url.startswith("driver://"):
        url = Settings.from_env().database_url
    config.set_main_option("sqlalchemy.url", url)
    return url


def run_migrations_offline() -> None:
    """Render SQL without connecting to the database."""
    context.configure(
        url=_resolve_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run against the same engine configuration the application uses."""
    settings = Settings.from_env()
    connectable = create_db_engine(replace(settings, database_url=_resolve_url()))

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite needs batch mode for ALTER TABLE.
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
