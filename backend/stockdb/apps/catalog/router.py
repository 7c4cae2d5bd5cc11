from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from stockdb.database import get_db, get_write_db

from . import schemas, services

router = APIRouter(prefix="", tags=["catalog"])


@router.get("/variants/", response_model=List[schemas.VariantRead])
def list_variants(db: Session = Depends(get_db)):
    return services.list_variants(db)


@router.post(
    "/variants/",
    response_model=schemas.VariantRead,
    status_code=status.HTTP_201_CREATED,
)
def create_variant(payload: schemas.VariantCreate, db: Session = Depends(get_write_db)):
    variant = services.create_variant(db, payload=payload)
    db.commit()
    return variant


@router.get("/locations/", response_model=List[schemas.LocationRead])
def list_locations(db: Session = Depends(get_db)):
    return services.list_locations(db)


@router.post(
    "/locations/",
    response_model=schemas.LocationRead,
    status_code=status.HTTP_201_CREATED,
)
def create_location(payload: schemas.LocationCreate, db: Session = Depends(get_write_db)):
    location = services.create_location(db, payload=payload)
    db.commit()
    return location
