from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

from stockdb.apps.catalog import schemas as catalog_schemas  # noqa: E402
from stockdb.apps.catalog import services as catalog_services  # noqa: E402
from stockdb.apps.inventory.engine import LedgerEngine  # noqa: E402
from stockdb.config import Settings  # noqa: E402
from stockdb.database import (  # noqa: E402
    create_db_and_tables,
    create_db_engine,
    create_session_factory,
    session_scope,
)
from stockdb.main import create_app  # noqa: E402


def seed_catalog(session_factory) -> Dict[str, int]:
    """Two variants of one product, one of another, and two locations."""
    with session_scope(session_factory) as db:
        tee_m = catalog_services.create_variant(
            db,
            payload=catalog_schemas.VariantCreate(product="Tee", size="M", color="Black", unique_sku="TEE-M-BLK"),
        )
        tee_l = catalog_services.create_variant(
            db,
            payload=catalog_schemas.VariantCreate(product="Tee", size="L", color="Black", unique_sku="TEE-L-BLK"),
        )
        hoodie = catalog_services.create_variant(
            db,
            payload=catalog_schemas.VariantCreate(product="Hoodie", size="L", color="Green", unique_sku="HOOD-L-GRN"),
        )
        warehouse = catalog_services.create_location(db, payload=catalog_schemas.LocationCreate(name="Warehouse"))
        shop = catalog_services.create_location(db, payload=catalog_schemas.LocationCreate(name="Shop"))
        return {
            "tee_m": tee_m.id,
            "tee_l": tee_l.id,
            "hoodie": hoodie.id,
            "warehouse": warehouse.id,
            "shop": shop.id,
        }


@pytest.fixture()
def settings():
    return Settings(database_url="sqlite+pysqlite:///:memory:", lock_timeout_sec=5.0)


@pytest.fixture()
def session_factory(settings):
    engine = create_db_engine(settings)
    create_db_and_tables(engine)
    try:
        yield create_session_factory(engine)
    finally:
        engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def catalog(session_factory):
    return seed_catalog(session_factory)


@pytest.fixture()
def ledger(session_factory, settings):
    return LedgerEngine(session_factory, settings)


@pytest.fixture()
def file_settings(tmp_path):
    """File-backed SQLite so threads get separate connections."""
    return Settings(database_url=f"sqlite+pysqlite:///{tmp_path / 'stock.sqlite3'}", lock_timeout_sec=30.0)


@pytest.fixture()
def file_session_factory(file_settings):
    engine = create_db_engine(file_settings)
    create_db_and_tables(engine)
    try:
        yield create_session_factory(engine)
    finally:
        engine.dispose()


@pytest.fixture()
def file_catalog(file_session_factory):
    return seed_catalog(file_session_factory)


@pytest.fixture()
def app(settings):
    return create_app(settings)


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def api_catalog(app, client):
    # `client` first: the lifespan creates the tables.
    return seed_catalog(app.state.session_factory)
