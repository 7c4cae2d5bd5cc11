"""Guards run before the ledger engine touches any row. No side effects."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from stockdb.apps.catalog import services as catalog_services

NOTE_MAX_LENGTH = 1000

# Integer columns are int32 on PostgreSQL.
QUANTITY_MIN = -(2 ** 31)
QUANTITY_MAX = 2 ** 31 - 1

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


def fits_integer_column(value: int) -> bool:
    return QUANTITY_MIN <= value <= QUANTITY_MAX


def coerce_int(value: Any) -> Optional[int]:
    # bool is an int subclass; True is not a quantity.
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        return int(value) if value == value.to_integral_value() else None
    if isinstance(value, str):
        raw = value.strip()
        if _INT_PATTERN.fullmatch(raw):
            return int(raw)
    return None


def check_quantity_change(value: Any, errors: Dict[str, List[str]]) -> Optional[int]:
    quantity = coerce_int(value)
    if quantity is None:
        errors.setdefault("quantity_change", []).append("A valid integer is required.")
        return None
    if quantity == 0:
        errors.setdefault("quantity_change", []).append("Quantity change must not be zero.")
        return None
    if not fits_integer_column(quantity):
        errors.setdefault("quantity_change", []).append(
            f"Ensure this value is between {QUANTITY_MIN} and {QUANTITY_MAX}."
        )
        return None
    return quantity


def check_note(value: Optional[str], errors: Dict[str, List[str]]) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        errors.setdefault("notes", []).append("Not a valid string.")
        return None
    note = value.strip()
    if len(note) > NOTE_MAX_LENGTH:
        errors.setdefault("notes", []).append(f"Ensure this field has no more than {NOTE_MAX_LENGTH} characters.")
        return None
    return note or None


def check_references(db: Session, variant_id: Any, location_id: Any, errors: Dict[str, List[str]]) -> None:
    variant_pk = coerce_int(variant_id)
    if variant_pk is None:
        errors.setdefault("product_variant", []).append("A valid integer is required.")
    elif not fits_integer_column(variant_pk) or catalog_services.get_variant(db, variant_pk) is None:
        errors.setdefault("product_variant", []).append(
            f'Invalid pk "{variant_id}" - object does not exist.'
        )

    location_pk = coerce_int(location_id)
    if location_pk is None:
        errors.setdefault("location", []).append("A valid integer is required.")
    elif not fits_integer_column(location_pk) or catalog_services.get_location(db, location_pk) is None:
        errors.setdefault("location", []).append(
            f'Invalid pk "{location_id}" - object does not exist.'
        )
