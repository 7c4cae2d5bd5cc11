from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from stockdb.apps.inventory import models as inventory_models
from stockdb.apps.inventory.engine import LedgerEngine
from stockdb.apps.inventory.store import BalanceStore
from stockdb.database import session_scope
from stockdb.errors import TransientIOError


def _disk_failure():
    return OperationalError("UPDATE stock_levels", {}, Exception("disk I/O error"))


def _snapshot(session_factory):
    with session_scope(session_factory) as db:
        movements = [
            (m.product_variant_id, m.location_id, m.quantity_change)
            for m in db.query(inventory_models.StockMovement).order_by(inventory_models.StockMovement.id)
        ]
        levels = [
            (lv.product_variant_id, lv.location_id, lv.quantity)
            for lv in db.query(inventory_models.StockLevel).order_by(inventory_models.StockLevel.id)
        ]
    return movements, levels


def test_failure_after_movement_append_leaves_no_trace(ledger, catalog, session_factory, monkeypatch):
    ledger.apply_movement(catalog["tee_m"], catalog["warehouse"], 10)
    before = _snapshot(session_factory)

    def failing_increment(self, level, delta):
        raise _disk_failure()

    monkeypatch.setattr(BalanceStore, "increment", failing_increment)

    with pytest.raises(TransientIOError):
        ledger.apply_movement(catalog["tee_m"], catalog["warehouse"], 5)

    assert _snapshot(session_factory) == before


def test_failure_after_balance_update_leaves_no_trace(ledger, catalog, session_factory, monkeypatch):
    ledger.apply_movement(catalog["tee_m"], catalog["warehouse"], 10)
    before = _snapshot(session_factory)
    original_increment = BalanceStore.increment

    def increment_then_fail(self, level, delta):
        original_increment(self, level, delta)
        raise _disk_failure()

    monkeypatch.setattr(BalanceStore, "increment", increment_then_fail)

    with pytest.raises(TransientIOError):
        ledger.apply_movement(catalog["tee_m"], catalog["warehouse"], -4)

    assert _snapshot(session_factory) == before


def test_failure_on_first_movement_does_not_leave_empty_balance_row(ledger, catalog, session_factory, monkeypatch):
    def failing_append(self, db, key, quantity, note):
        raise _disk_failure()

    monkeypatch.setattr(LedgerEngine, "_append_movement", failing_append)

    with pytest.raises(TransientIOError):
        ledger.apply_movement(catalog["hoodie"], catalog["shop"], 3)

    assert _snapshot(session_factory) == ([], [])


def test_non_transient_errors_propagate_after_rollback(ledger, catalog, session_factory, monkeypatch):
    def broken_append(self, db, key, quantity, note):
        raise IntegrityError("INSERT INTO stock_movements", {}, Exception("constraint failed"))

    monkeypatch.setattr(LedgerEngine, "_append_movement", broken_append)

    with pytest.raises(IntegrityError):
        ledger.apply_movement(catalog["hoodie"], catalog["shop"], 3)

    assert _snapshot(session_factory) == ([], [])


def test_engine_recovers_after_failure(ledger, catalog, session_factory, monkeypatch):
    def failing_increment(self, level, delta):
        raise _disk_failure()

    with monkeypatch.context() as patch:
        patch.setattr(BalanceStore, "increment", failing_increment)
        with pytest.raises(TransientIOError):
            ledger.apply_movement(catalog["tee_l"], catalog["shop"], 2)

    result = ledger.apply_movement(catalog["tee_l"], catalog["shop"], 2)
    assert result.quantity == 2
    assert ledger.verify_balances() == []
    assert len(ledger.locks) == 0
