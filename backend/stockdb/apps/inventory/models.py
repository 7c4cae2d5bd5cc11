from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from stockdb.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StockLevel(Base):
    """
    Materialised on-hand quantity for one (variant, location) pair.

    Always equal to the sum of StockMovement.quantity_change for the same
    pair. Written only by the ledger engine through BalanceStore.
    """

    __tablename__ = "stock_levels"
    __table_args__ = (
        UniqueConstraint("product_variant_id", "location_id", name="uq_stock_level_variant_location"),
        Index("ix_stock_levels_location", "location_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_variant_id = Column(
        Integer,
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    product_variant = relationship("ProductVariant", lazy="joined")
    location = relationship("Location", lazy="joined")


class StockMovement(Base):
    """Append-only ledger entry. Never updated or deleted once committed."""

    __tablename__ = "stock_movements"
    __table_args__ = (
        CheckConstraint("quantity_change <> 0", name="ck_stock_movement_nonzero"),
        Index("ix_stock_movements_key", "product_variant_id", "location_id"),
        Index("ix_stock_movements_created", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_variant_id = Column(
        Integer,
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
    )
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False)
    quantity_change = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    product_variant = relationship("ProductVariant", lazy="joined")
    location = relationship("Location", lazy="joined")
