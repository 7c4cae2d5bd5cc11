from __future__ import annotations

from sqlalchemy import event

from stockdb.apps.inventory import models as inventory_models
from stockdb.apps.inventory.engine import LedgerEngine
from stockdb.apps.inventory.store import BalanceStore
from stockdb.database import session_scope


def _level_rows(session_factory):
    with session_scope(session_factory) as db:
        return [(lv.id, lv.quantity) for lv in db.query(inventory_models.StockLevel)]


def test_get_or_create_falls_back_to_row_inserted_concurrently(ledger, catalog, session_factory, monkeypatch):
    key = (catalog["tee_m"], catalog["warehouse"])
    first = ledger.apply_movement(*key, 5)
    original_find = BalanceStore.find
    lookups = []

    def find_missing_once(self, variant_id, location_id, *, for_update=False):
        lookups.append(for_update)
        if len(lookups) == 1:
            # the row exists, but this lookup ran before the other insert committed
            return None
        return original_find(self, variant_id, location_id, for_update=for_update)

    monkeypatch.setattr(BalanceStore, "find", find_missing_once)

    result = ledger.apply_movement(*key, 3)

    assert lookups[:2] == [True, True]
    assert result.stock_level.id == first.stock_level.id
    assert result.quantity == 8
    monkeypatch.undo()
    assert _level_rows(session_factory) == [(first.stock_level.id, 8)]
    assert ledger.verify_balances() == []


def test_reads_begin_without_taking_the_write_lock(ledger, catalog, session_factory):
    db_engine = session_factory.kw["bind"]
    begins = []

    def record(conn, cursor, statement, parameters, context, executemany):
        if statement.startswith("BEGIN"):
            begins.append(statement)

    event.listen(db_engine, "before_cursor_execute", record)
    try:
        ledger.apply_movement(catalog["hoodie"], catalog["shop"], 2)
        write_begins = list(begins)
        begins.clear()

        ledger.list_balances()
        ledger.get_balance(catalog["hoodie"], catalog["shop"])
        ledger.verify_balances()
    finally:
        event.remove(db_engine, "before_cursor_execute", record)

    assert write_begins == ["BEGIN IMMEDIATE"]
    assert begins == ["BEGIN", "BEGIN", "BEGIN"]


def test_rebuild_locks_rows_before_summing_the_ledger(ledger, catalog, session_factory, monkeypatch):
    key = (catalog["tee_l"], catalog["shop"])
    ledger.apply_movement(*key, 6)
    with session_scope(session_factory) as db:
        db.query(inventory_models.StockLevel).one().quantity = 60

    calls = []
    original_get_or_create = BalanceStore.get_or_create
    original_sums = LedgerEngine._ledger_sums

    def tracking_get_or_create(self, variant_id, location_id):
        calls.append("lock")
        return original_get_or_create(self, variant_id, location_id)

    def tracking_sums(db):
        calls.append("sums")
        return original_sums(db)

    monkeypatch.setattr(BalanceStore, "get_or_create", tracking_get_or_create)
    monkeypatch.setattr(LedgerEngine, "_ledger_sums", staticmethod(tracking_sums))

    assert ledger.rebuild_balances() == 1

    # verify pass, then lock, then the authoritative sum
    assert calls == ["sums", "lock", "sums"]
    assert ledger.get_balance(*key) == 6
