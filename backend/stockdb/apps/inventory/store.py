from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models


class BalanceStore:
    """
    Keyed access to StockLevel rows inside the caller's transaction.

    Only LedgerEngine builds one; nothing else writes stock_levels.
    """

    def __init__(self, db: Session):
        self.db = db

    def find(self, variant_id: int, location_id: int, *, for_update: bool = False) -> Optional[models.StockLevel]:
        query = self.db.query(models.StockLevel).filter(
            models.StockLevel.product_variant_id == variant_id,
            models.StockLevel.location_id == location_id,
        )
        if for_update:
            query = query.with_for_update(of=models.StockLevel)
        return query.first()

    def get_or_create(self, variant_id: int, location_id: int) -> models.StockLevel:
        """Return the locked row for the key, inserting it at quantity 0 if missing."""
        level = self.find(variant_id, location_id, for_update=True)
        if level is not None:
            return level

        level = models.StockLevel(product_variant_id=variant_id, location_id=location_id, quantity=0)
        try:
            with self.db.begin_nested():
                self.db.add(level)
                self.db.flush()
        except IntegrityError:
            # Another transaction inserted the same key first.
            level = self.find(variant_id, location_id, for_update=True)
            if level is None:
                raise
        return level

    def increment(self, level: models.StockLevel, delta: int) -> int:
        level.quantity = int(level.quantity or 0) + delta
        self.db.flush()
        return level.quantity
