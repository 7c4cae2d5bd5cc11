from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockdb.errors import ConflictError

from . import models, schemas


def _get_product_by_name(db: Session, name: str) -> Optional[models.Product]:
    return (
        db.query(models.Product)
        .filter(func.lower(models.Product.name) == name.strip().lower())
        .first()
    )


def ensure_product(db: Session, *, name: str) -> models.Product:
    product = _get_product_by_name(db, name)
    if product:
        return product
    product = models.Product(name=name.strip())
    db.add(product)
    db.flush()
    return product


def _get_variant_by_sku(db: Session, sku: str) -> Optional[models.ProductVariant]:
    return db.query(models.ProductVariant).filter(models.ProductVariant.unique_sku == sku).first()


def _get_location_by_name(db: Session, name: str) -> Optional[models.Location]:
    return db.query(models.Location).filter(func.lower(models.Location.name) == name.lower()).first()


def create_variant(db: Session, *, payload: schemas.VariantCreate) -> models.ProductVariant:
    duplicate = ConflictError(f"Variant with SKU {payload.unique_sku} already exists.", code="duplicate_sku")
    if _get_variant_by_sku(db, payload.unique_sku):
        raise duplicate
    product = ensure_product(db, name=payload.product)
    variant = models.ProductVariant(
        product_id=product.id,
        size=payload.size,
        color=payload.color,
        unique_sku=payload.unique_sku,
    )
    try:
        with db.begin_nested():
            db.add(variant)
            db.flush()
    except IntegrityError as exc:
        # inserted concurrently after the lookup above
        raise duplicate from exc
    db.refresh(variant)
    return variant


def create_location(db: Session, *, payload: schemas.LocationCreate) -> models.Location:
    duplicate = ConflictError(f"Location {payload.name} already exists.", code="duplicate_location")
    if _get_location_by_name(db, payload.name):
        raise duplicate
    location = models.Location(name=payload.name)
    try:
        with db.begin_nested():
            db.add(location)
            db.flush()
    except IntegrityError as exc:
        raise duplicate from exc
    return location


def get_variant(db: Session, variant_id: int) -> Optional[models.ProductVariant]:
    return db.get(models.ProductVariant, variant_id)


def get_location(db: Session, location_id: int) -> Optional[models.Location]:
    return db.get(models.Location, location_id)


def list_variants(db: Session) -> List[models.ProductVariant]:
    return (
        db.query(models.ProductVariant)
        .join(models.Product, models.ProductVariant.product_id == models.Product.id)
        .order_by(
            func.lower(models.Product.name).asc(),
            models.ProductVariant.size.asc(),
            models.ProductVariant.color.asc(),
            models.ProductVariant.id.asc(),
        )
        .all()
    )


def list_locations(db: Session) -> List[models.Location]:
    return (
        db.query(models.Location)
        .order_by(func.lower(models.Location.name).asc(), models.Location.id.asc())
        .all()
    )
