from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from stockdb.apps.inventory.engine import LedgerEngine
from stockdb.apps.inventory.locks import KeyedLocks
from stockdb.errors import TransientIOError


@pytest.fixture()
def file_ledger(file_session_factory, file_settings):
    return LedgerEngine(file_session_factory, file_settings)


def test_concurrent_movements_on_one_key_lose_no_updates(file_ledger, file_catalog):
    key = (file_catalog["tee_m"], file_catalog["warehouse"])
    file_ledger.apply_movement(*key, 100)
    deltas = [5, -3, 7, 1, -2, 4, 9, -6, 2, 3] * 4

    def worker(delta):
        return file_ledger.apply_movement(key[0], key[1], delta).movement.id

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(worker, deltas))

    assert len(set(ids)) == len(deltas)
    assert file_ledger.get_balance(*key) == 100 + sum(deltas)
    assert file_ledger.verify_balances() == []
    assert len(file_ledger.locks) == 0


def test_concurrent_first_movements_create_one_balance_row(file_ledger, file_catalog):
    key = (file_catalog["hoodie"], file_catalog["shop"])

    with ThreadPoolExecutor(max_workers=6) as pool:
        list(pool.map(lambda _: file_ledger.apply_movement(key[0], key[1], 1), range(12)))

    rows = [b for b in file_ledger.list_balances() if (b.product_variant_id, b.location_id) == key]
    assert len(rows) == 1
    assert rows[0].quantity == 12


def test_concurrent_movements_across_keys(file_ledger, file_catalog):
    keys = [
        (file_catalog["tee_m"], file_catalog["warehouse"]),
        (file_catalog["tee_l"], file_catalog["warehouse"]),
        (file_catalog["hoodie"], file_catalog["shop"]),
    ]
    jobs = [(key, delta) for key in keys for delta in (3, 4, 5, 6)]

    with ThreadPoolExecutor(max_workers=6) as pool:
        list(pool.map(lambda job: file_ledger.apply_movement(job[0][0], job[0][1], job[1]), jobs))

    for key in keys:
        assert file_ledger.get_balance(*key) == 18
    assert file_ledger.verify_balances() == []


def test_keyed_locks_do_not_block_other_keys():
    locks = KeyedLocks()
    acquired_other = threading.Event()

    with locks.hold((1, 1)):
        def take_other():
            with locks.hold((2, 1), timeout=1):
                acquired_other.set()

        thread = threading.Thread(target=take_other)
        thread.start()
        thread.join(timeout=2)

    assert acquired_other.is_set()
    assert len(locks) == 0


def test_keyed_locks_time_out_on_same_key():
    locks = KeyedLocks()
    outcome = {}

    def take_same():
        try:
            with locks.hold((1, 1), timeout=0.05):
                outcome["acquired"] = True
        except TransientIOError:
            outcome["timed_out"] = True

    with locks.hold((1, 1)):
        thread = threading.Thread(target=take_same)
        thread.start()
        thread.join(timeout=2)

    assert outcome == {"timed_out": True}
    assert len(locks) == 0
