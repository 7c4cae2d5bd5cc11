# backend/stockdb/errors.py
"""
Error taxonomy shared by the ledger engine, the HTTP layer and the client.

- ValidationError:  malformed or out-of-range input. Not retried. Carries
                    per-field messages ({"quantity_change": ["..."]}).
- ConflictError:    the change would break a ledger rule (e.g. negative
                    stock when backorders are disabled). Not retried.
- TransientIOError: storage or network unavailable. Safe to retry.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

NON_FIELD_ERRORS = "non_field_errors"

TRANSIENT_DETAIL = "Storage temporarily unavailable. Try again later."


class LedgerError(Exception):
    code = "ledger_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(LedgerError):
    code = "invalid"

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = {field: list(messages) for field, messages in errors.items()}
        summary = "; ".join(f"{field}: {' '.join(messages)}" for field, messages in self.errors.items())
        super().__init__(summary or "Invalid input.")

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})


class ConflictError(LedgerError):
    code = "conflict"


class TransientIOError(LedgerError):
    code = "transient"


# -------------------------------------------------------------------
# FASTAPI HANDLERS
# -------------------------------------------------------------------


def _field_name(loc) -> str:
    # ("body", "quantity_change") -> "quantity_change"; a bare body error has no field.
    parts = [str(part) for part in loc if part not in ("body", "query", "path")]
    return ".".join(parts) or NON_FIELD_ERRORS


def request_validation_to_fields(exc: RequestValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        field = _field_name(err.get("loc") or ())
        message = str(err.get("msg") or "Invalid value.")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(field, []).append(message)
    return errors


def _validation_handler(_: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=exc.errors)


def _request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(request_validation_to_fields(exc)),
    )


def _conflict_handler(_: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": exc.message, "code": exc.code},
    )


def _transient_handler(_: Request, exc: TransientIOError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": TRANSIENT_DETAIL, "code": exc.code},
        headers={"Retry-After": "1"},
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _validation_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(ConflictError, _conflict_handler)
    app.add_exception_handler(TransientIOError, _transient_handler)
