# backend/stockdb/apps/inventory/engine.py
"""
Ledger engine: the only writer of stock_levels.

Every accepted movement does exactly two things in one transaction:
append a StockMovement row and add its delta to the StockLevel row for
the same (variant, location). Either both persist or neither does, so
StockLevel.quantity always equals the sum of the movements for its key.

Writers on the same key are serialised twice over:
- in-process by KeyedLocks (threads sharing this engine),
- in the database by SELECT ... FOR UPDATE on the stock level row
  (processes sharing a PostgreSQL database).
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from stockdb.apps.catalog import models as catalog_models
from stockdb.apps.catalog import services as catalog_services
from stockdb.config import Settings
from stockdb.database import WRITE_TRANSACTION
from stockdb.errors import ConflictError, LedgerError, TransientIOError, ValidationError

from . import models, validation
from .locks import KeyedLocks
from .store import BalanceStore

logger = logging.getLogger(__name__)

StockKey = Tuple[int, int]


@dataclass(frozen=True)
class MovementResult:
    movement: models.StockMovement
    stock_level: models.StockLevel

    @property
    def quantity(self) -> int:
        return int(self.stock_level.quantity)


@dataclass(frozen=True)
class BalanceDrift:
    product_variant_id: int
    location_id: int
    recorded: Optional[int]
    expected: int


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


class LedgerEngine:
    def __init__(self, session_factory: sessionmaker, settings: Settings, locks: Optional[KeyedLocks] = None):
        self.session_factory = session_factory
        self.settings = settings
        self.locks = locks or KeyedLocks()

    # ------------------------------------------------------------------
    # WRITES
    # ------------------------------------------------------------------

    def apply_movement(
        self,
        variant_id: Any,
        location_id: Any,
        quantity_change: Any,
        note: Optional[str] = None,
    ) -> MovementResult:
        errors: Dict[str, List[str]] = {}
        quantity = validation.check_quantity_change(quantity_change, errors)
        clean_note = validation.check_note(note, errors)
        key = self._key(variant_id, location_id, errors)
        if errors:
            raise ValidationError(errors)

        with self.locks.hold(key, timeout=self.settings.lock_timeout_sec):
            with self._transaction(write=True) as db:
                result = self._apply(db, key, quantity, clean_note)

        logger.info(
            "stock movement applied",
            extra={
                "movement_id": result.movement.id,
                "product_variant_id": key[0],
                "location_id": key[1],
                "quantity_change": quantity,
                "quantity": result.quantity,
            },
        )
        return result

    def _apply(self, db: Session, key: StockKey, quantity: int, note: Optional[str]) -> MovementResult:
        variant_id, location_id = key
        ref_errors: Dict[str, List[str]] = {}
        validation.check_references(db, variant_id, location_id, ref_errors)
        if ref_errors:
            raise ValidationError(ref_errors)

        store = BalanceStore(db)
        level = store.get_or_create(variant_id, location_id)
        current = int(level.quantity or 0)
        if current + quantity < 0 and not self.settings.allow_negative_stock:
            raise ConflictError(
                f"Insufficient stock: {current} on hand, cannot apply {quantity}.",
                code="insufficient_stock",
            )
        if not validation.fits_integer_column(current + quantity):
            raise ConflictError(
                f"Stock level would overflow: {current} on hand, cannot apply {quantity}.",
                code="quantity_overflow",
            )

        movement = self._append_movement(db, key, quantity, note)
        store.increment(level, quantity)

        db.refresh(movement)
        db.refresh(level)
        return MovementResult(movement=movement, stock_level=level)

    def _append_movement(self, db: Session, key: StockKey, quantity: int, note: Optional[str]) -> models.StockMovement:
        movement = models.StockMovement(
            product_variant_id=key[0],
            location_id=key[1],
            quantity_change=quantity,
            notes=note,
        )
        db.add(movement)
        db.flush()
        return movement

    def rebuild_balances(self) -> int:
        """Rewrite drifted stock levels from the ledger. Returns the number of rows corrected."""
        drifts = self.verify_balances()
        if not drifts:
            return 0
        keys = sorted({(d.product_variant_id, d.location_id) for d in drifts})
        with ExitStack() as stack:
            for key in keys:
                stack.enter_context(self.locks.hold(key, timeout=self.settings.lock_timeout_sec))
            with self._transaction(write=True) as db:
                store = BalanceStore(db)
                levels = {key: store.get_or_create(*key) for key in keys}
                expected = self._ledger_sums(db)
                for key, level in levels.items():
                    level.quantity = expected.get(key, 0)
                db.flush()
        logger.warning("stock levels rebuilt from ledger", extra={"corrected": len(keys)})
        return len(keys)

    # ------------------------------------------------------------------
    # READS
    # ------------------------------------------------------------------

    def list_balances(self) -> List[models.StockLevel]:
        with self._transaction() as db:
            return (
                db.query(models.StockLevel)
                .join(
                    catalog_models.ProductVariant,
                    models.StockLevel.product_variant_id == catalog_models.ProductVariant.id,
                )
                .join(catalog_models.Product, catalog_models.ProductVariant.product_id == catalog_models.Product.id)
                .join(catalog_models.Location, models.StockLevel.location_id == catalog_models.Location.id)
                .order_by(
                    func.lower(catalog_models.Product.name).asc(),
                    catalog_models.ProductVariant.size.asc(),
                    catalog_models.ProductVariant.color.asc(),
                    func.lower(catalog_models.Location.name).asc(),
                    models.StockLevel.id.asc(),
                )
                .all()
            )

    def get_balance(self, variant_id: int, location_id: int) -> int:
        with self._transaction() as db:
            level = BalanceStore(db).find(variant_id, location_id)
            return int(level.quantity) if level is not None else 0

    def list_reference_data(
        self,
    ) -> Tuple[List[catalog_models.ProductVariant], List[catalog_models.Location]]:
        with self._transaction() as db:
            return catalog_services.list_variants(db), catalog_services.list_locations(db)

    def list_movements(
        self,
        *,
        variant_id: Optional[int] = None,
        location_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[models.StockMovement]:
        with self._transaction() as db:
            query = db.query(models.StockMovement)
            if variant_id is not None:
                query = query.filter(models.StockMovement.product_variant_id == variant_id)
            if location_id is not None:
                query = query.filter(models.StockMovement.location_id == location_id)
            return (
                query.order_by(models.StockMovement.created_at.desc(), models.StockMovement.id.desc())
                .offset(skip)
                .limit(limit)
                .all()
            )

    def verify_balances(self) -> List[BalanceDrift]:
        """Compare every stock level with the fold of its movements."""
        with self._transaction() as db:
            expected = self._ledger_sums(db)
            recorded = {
                (row.product_variant_id, row.location_id): int(row.quantity)
                for row in db.query(
                    models.StockLevel.product_variant_id,
                    models.StockLevel.location_id,
                    models.StockLevel.quantity,
                )
            }
        drifts = []
        for key in sorted(set(expected) | set(recorded)):
            want = expected.get(key, 0)
            have = recorded.get(key)
            if have != want and not (have is None and want == 0):
                drifts.append(BalanceDrift(key[0], key[1], have, want))
        return drifts

    # ------------------------------------------------------------------
    # HELPERS
    # ------------------------------------------------------------------

    @staticmethod
    def _ledger_sums(db: Session) -> Dict[StockKey, int]:
        rows = (
            db.query(
                models.StockMovement.product_variant_id,
                models.StockMovement.location_id,
                func.sum(models.StockMovement.quantity_change),
            )
            .group_by(models.StockMovement.product_variant_id, models.StockMovement.location_id)
            .all()
        )
        return {(variant_id, location_id): int(total or 0) for variant_id, location_id, total in rows}

    @staticmethod
    def _key(variant_id: Any, location_id: Any, errors: Dict[str, List[str]]) -> Optional[StockKey]:
        variant_pk = validation.coerce_int(variant_id)
        location_pk = validation.coerce_int(location_id)
        if variant_pk is None:
            errors.setdefault("product_variant", []).append("A valid integer is required.")
        if location_pk is None:
            errors.setdefault("location", []).append("A valid integer is required.")
        if variant_pk is None or location_pk is None:
            return None
        return variant_pk, location_pk

    def _transaction(self, write: bool = False):
        return _EngineTransaction(self.session_factory, write=write)


class _EngineTransaction:
    """
    Session scope that commits on success and rolls back on any error.

    Database failures that are worth retrying come out as TransientIOError;
    ledger errors pass through untouched after the rollback.
    """

    def __init__(self, session_factory: sessionmaker, write: bool = False):
        self.session_factory = session_factory
        self.write = write
        self.db: Optional[Session] = None

    def __enter__(self) -> Session:
        self.db = self.session_factory()
        if self.write:
            try:
                self.db.connection(execution_options=WRITE_TRANSACTION)
            except Exception as exc:
                self.db.close()
                if _is_transient(exc):
                    logger.warning("stock ledger could not begin a write", extra={"error": str(exc)})
                    raise TransientIOError("Storage unavailable; no changes were applied.") from exc
                raise
        return self.db

    def __exit__(self, exc_type, exc, tb) -> bool:
        db = self.db
        try:
            if exc is None:
                try:
                    db.commit()
                except Exception as commit_exc:
                    db.rollback()
                    if _is_transient(commit_exc):
                        logger.warning("stock ledger commit failed", extra={"error": str(commit_exc)})
                        raise TransientIOError("Storage unavailable while committing.") from commit_exc
                    raise
                return False

            db.rollback()
            if isinstance(exc, LedgerError):
                return False
            if _is_transient(exc):
                logger.warning("stock ledger storage failure", extra={"error": str(exc)})
                raise TransientIOError("Storage unavailable; no changes were applied.") from exc
            return False
        finally:
            db.close()
