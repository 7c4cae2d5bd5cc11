from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from stockdb.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    variants = relationship("ProductVariant", back_populates="product_ref", lazy="selectin")


class ProductVariant(Base):
    """A sellable item: one product in one size and color, identified by SKU."""

    __tablename__ = "product_variants"
    __table_args__ = (
        UniqueConstraint("unique_sku", name="uq_product_variant_sku"),
        Index("ix_product_variants_product", "product_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    size = Column(String(32), nullable=False)
    color = Column(String(64), nullable=False)
    unique_sku = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    product_ref = relationship("Product", back_populates="variants", lazy="joined")

    @property
    def product(self) -> str:
        return self.product_ref.name if self.product_ref is not None else ""

    @property
    def label(self) -> str:
        return f"{self.product} - {self.size}/{self.color} ({self.unique_sku})"


class Location(Base):
    __tablename__ = "locations"
    __table_args__ = (UniqueConstraint("name", name="uq_location_name"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(128), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
