# backend/stockdb/gateway/client.py
"""
HTTP client for the stock ledger API.

Maps the service's error payloads back onto the shared taxonomy:
400 -> ValidationError, 409 -> ConflictError, 5xx / network -> TransientIOError.
Reads are retried with exponential backoff; movement submissions are not,
because a movement is not idempotent.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from stockdb.config import Settings
from stockdb.errors import NON_FIELD_ERRORS, ConflictError, TransientIOError, ValidationError

logger = logging.getLogger(__name__)


class StockApiClient:
    def __init__(
        self,
        base_url: str,
        *,
        api_prefix: str = "/api",
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_sec: float = 0.5,
        client: Optional[httpx.Client] = None,
    ):
        self.api_prefix = api_prefix.rstrip("/")
        self.max_retries = max(0, max_retries)
        self.backoff_sec = backoff_sec
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.Client] = None) -> "StockApiClient":
        return cls(
            settings.api_url,
            api_prefix=settings.api_prefix,
            timeout=settings.http_timeout_sec,
            max_retries=settings.http_max_retries,
            backoff_sec=settings.http_backoff_sec,
            client=client,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "StockApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # OPERATIONS
    # ------------------------------------------------------------------

    def list_stock_levels(self) -> List[Dict[str, Any]]:
        return self._get("/stock-levels/")

    def list_variants(self) -> List[Dict[str, Any]]:
        return self._get("/variants/")

    def list_locations(self) -> List[Dict[str, Any]]:
        return self._get("/locations/")

    def list_reference_data(self) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        return self.list_variants(), self.list_locations()

    def list_movements(self, *, product_variant: Optional[int] = None, location: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {}
        if product_variant is not None:
            params["product_variant"] = product_variant
        if location is not None:
            params["location"] = location
        return self._get("/stock-movements/", params=params)

    def create_movement(
        self,
        *,
        product_variant: Any,
        location: Any,
        quantity_change: Any,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = {
            "product_variant": product_variant,
            "location": location,
            "quantity_change": quantity_change,
            "notes": notes,
        }
        try:
            response = self._client.post(self._url("/stock-movements/"), json=body)
        except httpx.TransportError as exc:
            logger.warning("stock movement submission failed", extra={"error": str(exc)})
            raise TransientIOError("Could not reach the stock service.") from exc
        return self._handle(response)

    # ------------------------------------------------------------------
    # TRANSPORT
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.api_prefix}{path}"

    def _get(self, path: str, params: Optional[dict] = None) -> Any:
        attempt = 0
        while True:
            try:
                response = self._client.get(self._url(path), params=params)
                if response.status_code < 500:
                    return self._handle(response)
                error: Exception = TransientIOError(f"Stock service returned HTTP {response.status_code}.")
            except httpx.TransportError as exc:
                error = exc

            if attempt >= self.max_retries:
                logger.warning("stock service read failed", extra={"path": path, "attempts": attempt + 1})
                if isinstance(error, TransientIOError):
                    raise error
                raise TransientIOError("Could not reach the stock service.") from error

            delay = self.backoff_sec * (2 ** attempt)
            attempt += 1
            logger.info("retrying stock service read", extra={"path": path, "attempt": attempt, "delay": delay})
            time.sleep(delay)

    @staticmethod
    def _handle(response: httpx.Response) -> Any:
        if response.is_success:
            try:
                return response.json()
            except ValueError as exc:
                # e.g. a proxy maintenance page served with 200
                raise TransientIOError("Stock service returned an unreadable response.") from exc

        payload = _json_or_none(response)
        if response.status_code == 400:
            raise ValidationError(_field_errors(payload))
        if response.status_code == 409:
            detail = payload.get("detail") if isinstance(payload, dict) else None
            code = payload.get("code") if isinstance(payload, dict) else None
            raise ConflictError(detail or "Request conflicts with current stock.", code=code)
        if response.status_code >= 500:
            raise TransientIOError(f"Stock service returned HTTP {response.status_code}.")
        raise ValidationError({NON_FIELD_ERRORS: [f"Unexpected HTTP {response.status_code} from stock service."]})


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _field_errors(payload: Any) -> Dict[str, List[str]]:
    if not isinstance(payload, dict) or not payload:
        return {NON_FIELD_ERRORS: ["Invalid request."]}
    errors: Dict[str, List[str]] = {}
    for field, messages in payload.items():
        if isinstance(messages, list):
            errors[field] = [str(m) for m in messages]
        else:
            errors[field] = [str(messages)]
    return errors
