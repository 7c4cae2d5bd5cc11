from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from stockdb.apps.catalog.schemas import LocationRead, VariantRead


class StockMovementCreate(BaseModel):
    # ids and quantity may arrive as numeric strings.
    product_variant: int
    location: int
    quantity_change: int
    notes: Optional[str] = None

    @field_validator("product_variant", "location", "quantity_change", mode="before")
    @classmethod
    def _reject_bool(cls, v):
        if isinstance(v, bool):
            raise ValueError("A valid integer is required.")
        return v

    @field_validator("notes")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class StockMovementRead(BaseModel):
    id: int
    product_variant: int = Field(validation_alias="product_variant_id")
    location: int = Field(validation_alias="location_id")
    quantity_change: int
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
        populate_by_name = True


class StockLevelRead(BaseModel):
    id: int
    product_variant: VariantRead
    location: LocationRead
    quantity: int

    class Config:
        from_attributes = True


class StockMovementCreated(StockMovementRead):
    stock_level: StockLevelRead


class BalanceDriftRead(BaseModel):
    product_variant_id: int
    location_id: int
    recorded: Optional[int] = None
    expected: int

    class Config:
        from_attributes = True
