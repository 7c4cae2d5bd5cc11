"""
Check that every stock level still equals the sum of its movements.

    python -m stockdb.scripts.verify_ledger           # report only, exit 1 on drift
    python -m stockdb.scripts.verify_ledger --repair  # rewrite drifted rows from the ledger
"""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from stockdb.apps.inventory.engine import LedgerEngine
from stockdb.config import Settings
from stockdb.database import create_db_engine, create_session_factory
from stockdb.logging_setup import setup_logging


def main(argv: Optional[Sequence[str]] = None, *, engine: Optional[LedgerEngine] = None) -> int:
    parser = argparse.ArgumentParser(description="Verify stock levels against the movement ledger.")
    parser.add_argument("--repair", action="store_true", help="Rewrite drifted stock levels from the ledger.")
    args = parser.parse_args(argv)

    if engine is None:
        settings = Settings.from_env()
        setup_logging(settings.log_level)
        engine = LedgerEngine(create_session_factory(create_db_engine(settings)), settings)

    drifts = engine.verify_balances()
    if not drifts:
        print("[OK] All stock levels match the ledger.")
        return 0

    for drift in drifts:
        recorded = "missing" if drift.recorded is None else drift.recorded
        print(
            f"[DRIFT] variant={drift.product_variant_id} location={drift.location_id} "
            f"recorded={recorded} expected={drift.expected}"
        )

    if not args.repair:
        return 1

    corrected = engine.rebuild_balances()
    print(f"[OK] Rebuilt {corrected} stock level(s) from the ledger.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
