from __future__ import annotations

from pydantic import BaseModel, field_validator


def _strip_required(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("This field may not be blank.")
    return value


class ProductCreate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def _strip(cls, v: str) -> str:
        return _strip_required(v)


class ProductRead(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class VariantCreate(BaseModel):
    product: str
    size: str
    color: str
    unique_sku: str

    @field_validator("product", "size", "color")
    @classmethod
    def _strip(cls, v: str) -> str:
        return _strip_required(v)

    @field_validator("unique_sku")
    @classmethod
    def _sku(cls, v: str) -> str:
        return _strip_required(v).upper()


class VariantRead(BaseModel):
    id: int
    product: str
    size: str
    color: str
    unique_sku: str

    class Config:
        from_attributes = True


class LocationCreate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def _strip(cls, v: str) -> str:
        return _strip_required(v)


class LocationRead(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True
