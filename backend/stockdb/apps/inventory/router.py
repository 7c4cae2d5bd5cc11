from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status

from . import schemas
from .engine import LedgerEngine, MovementResult

router = APIRouter(prefix="", tags=["inventory"])


def get_ledger_engine(request: Request) -> LedgerEngine:
    return request.app.state.ledger_engine


def _created(result: MovementResult) -> schemas.StockMovementCreated:
    movement = schemas.StockMovementRead.model_validate(result.movement)
    return schemas.StockMovementCreated(
        **movement.model_dump(),
        stock_level=schemas.StockLevelRead.model_validate(result.stock_level),
    )


@router.get("/stock-levels/", response_model=List[schemas.StockLevelRead])
def list_stock_levels(engine: LedgerEngine = Depends(get_ledger_engine)):
    return engine.list_balances()


@router.get("/stock-levels/drift/", response_model=List[schemas.BalanceDriftRead])
def list_stock_level_drift(engine: LedgerEngine = Depends(get_ledger_engine)):
    return engine.verify_balances()


@router.get("/stock-movements/", response_model=List[schemas.StockMovementRead])
def list_stock_movements(
    product_variant: Optional[int] = None,
    location: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    engine: LedgerEngine = Depends(get_ledger_engine),
):
    return engine.list_movements(variant_id=product_variant, location_id=location, skip=skip, limit=limit)


@router.post(
    "/stock-movements/",
    response_model=schemas.StockMovementCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_stock_movement(
    payload: schemas.StockMovementCreate,
    engine: LedgerEngine = Depends(get_ledger_engine),
):
    result = engine.apply_movement(
        payload.product_variant,
        payload.location,
        payload.quantity_change,
        payload.notes,
    )
    return _created(result)
