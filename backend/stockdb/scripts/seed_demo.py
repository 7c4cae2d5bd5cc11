from __future__ import annotations

from stockdb.apps.catalog import models as catalog_models
from stockdb.apps.catalog import schemas as catalog_schemas
from stockdb.apps.catalog import services as catalog_services
from stockdb.apps.inventory.engine import LedgerEngine
from stockdb.config import Settings
from stockdb.database import create_db_and_tables, create_db_engine, create_session_factory, session_scope
from stockdb.logging_setup import setup_logging

DEMO_VARIANTS = [
    ("Classic Tee", "M", "Black", "TEE-CLS-M-BLK"),
    ("Classic Tee", "L", "Black", "TEE-CLS-L-BLK"),
    ("Classic Tee", "M", "White", "TEE-CLS-M-WHT"),
    ("Oak Hoodie", "L", "Green", "HOOD-OAK-L-GRN"),
]

DEMO_LOCATIONS = ["Main Warehouse", "Shop Floor"]

DEMO_MOVEMENTS = [
    ("TEE-CLS-M-BLK", "Main Warehouse", 24, "Initial stock"),
    ("TEE-CLS-L-BLK", "Main Warehouse", 18, "Initial stock"),
    ("TEE-CLS-M-WHT", "Shop Floor", 6, "Initial stock"),
    ("HOOD-OAK-L-GRN", "Main Warehouse", 10, "Initial stock"),
    ("TEE-CLS-M-BLK", "Main Warehouse", -4, "Moved to shop floor"),
    ("TEE-CLS-M-BLK", "Shop Floor", 4, "Moved from warehouse"),
]


def main() -> None:
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    db_engine = create_db_engine(settings)
    create_db_and_tables(db_engine)
    session_factory = create_session_factory(db_engine)

    with session_scope(session_factory) as db:
        if db.query(catalog_models.ProductVariant).count():
            print("[INFO] Catalog already seeded; nothing to do.")
            return
        for product, size, color, sku in DEMO_VARIANTS:
            catalog_services.create_variant(
                db,
                payload=catalog_schemas.VariantCreate(product=product, size=size, color=color, unique_sku=sku),
            )
        for name in DEMO_LOCATIONS:
            catalog_services.create_location(db, payload=catalog_schemas.LocationCreate(name=name))

    with session_scope(session_factory) as db:
        variant_ids = {v.unique_sku: v.id for v in catalog_services.list_variants(db)}
        location_ids = {loc.name: loc.id for loc in catalog_services.list_locations(db)}

    engine = LedgerEngine(session_factory, settings)
    for sku, location_name, quantity, note in DEMO_MOVEMENTS:
        engine.apply_movement(variant_ids[sku], location_ids[location_name], quantity, note)

    print(f"[OK] Seeded {len(DEMO_VARIANTS)} variants, {len(DEMO_LOCATIONS)} locations, {len(DEMO_MOVEMENTS)} movements.")


if __name__ == "__main__":
    main()
