# backend/stockdb/scripts/stock_console.py
"""
Terminal front end for the stock ledger API.

    python -m stockdb.scripts.stock_console list
    python -m stockdb.scripts.stock_console options
    python -m stockdb.scripts.stock_console record --variant 3 --location 1 --quantity -2 --notes "sold"

Talks to STOCKDB_API_URL through StockApiClient only.
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, TextIO

from stockdb.config import Settings
from stockdb.errors import ConflictError, LedgerError, TransientIOError, ValidationError
from stockdb.gateway import StockApiClient
from stockdb.logging_setup import setup_logging

logger = logging.getLogger(__name__)

NO_DATA = "No stock data found."
LOAD_FAILED = "Failed to load data. Please try again later."
HEADERS = ("Product", "Variant", "Location", "Quantity")


@contextmanager
def _payload_shape() -> Iterator[None]:
    """Treat a response with missing or mistyped fields like a failed fetch."""
    try:
        yield
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise TransientIOError("Stock service returned data in an unexpected shape.") from exc


def variant_label(variant: Dict[str, Any]) -> str:
    return f"{variant['product']} - {variant['size']}/{variant['color']} ({variant['unique_sku']})"


def _rows(stock_levels: List[Dict[str, Any]]) -> List[Sequence[str]]:
    rows = []
    with _payload_shape():
        for item in stock_levels:
            variant = item["product_variant"]
            rows.append(
                (
                    str(variant["product"]),
                    f"Size: {variant['size']}, Color: {variant['color']}",
                    str(item["location"]["name"]),
                    str(item["quantity"]),
                )
            )
    return rows


def render_table(stock_levels: List[Dict[str, Any]]) -> str:
    if not stock_levels:
        return NO_DATA
    rows = _rows(stock_levels)
    widths = [max(len(HEADERS[i]), *(len(r[i]) for r in rows)) for i in range(len(HEADERS))]
    lines = ["  ".join(h.ljust(widths[i]) for i, h in enumerate(HEADERS))]
    lines.append("  ".join("-" * w for w in widths))
    for row in rows:
        lines.append("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)))
    return "\n".join(lines)


def show_stock_levels(client: StockApiClient, out: TextIO) -> bool:
    try:
        table = render_table(client.list_stock_levels())
    except LedgerError as exc:
        logger.error("Error fetching stock levels", extra={"error": exc.message})
        print(LOAD_FAILED, file=out)
        return False
    print(table, file=out)
    return True


def show_options(client: StockApiClient, out: TextIO) -> bool:
    ok = True
    try:
        variants = client.list_variants()
        with _payload_shape():
            lines = [f"  [{v['id']}] {variant_label(v)}" for v in variants]
        print("Variants:", file=out)
        for line in lines:
            print(line, file=out)
    except LedgerError as exc:
        logger.error("Error fetching variants", extra={"error": exc.message})
        print("Error loading variants", file=out)
        ok = False
    try:
        locations = client.list_locations()
        with _payload_shape():
            lines = [f"  [{loc['id']}] {loc['name']}" for loc in locations]
        print("Locations:", file=out)
        for line in lines:
            print(line, file=out)
    except LedgerError as exc:
        logger.error("Error fetching locations", extra={"error": exc.message})
        print("Error loading locations", file=out)
        ok = False
    return ok


def _describe(exc: LedgerError) -> str:
    if isinstance(exc, ValidationError):
        parts = [f"{field}: {' '.join(messages)}" for field, messages in exc.errors.items()]
        return "Invalid movement - " + "; ".join(parts)
    if isinstance(exc, ConflictError):
        return f"Movement rejected - {exc.message}"
    if isinstance(exc, TransientIOError):
        return "The stock service is unavailable. Please try again later."
    return exc.message


def record_movement(
    client: StockApiClient,
    out: TextIO,
    *,
    variant: str,
    location: str,
    quantity: str,
    notes: Optional[str],
) -> bool:
    try:
        created = client.create_movement(
            product_variant=variant,
            location=location,
            quantity_change=quantity,
            notes=notes,
        )
    except LedgerError as exc:
        logger.error("Form submission error", extra={"error": exc.message})
        print(f"There was an error submitting the movement. {_describe(exc)}", file=out)
        return False

    try:
        with _payload_shape():
            level = created.get("stock_level") or {}
            confirmation = (
                f"Stock movement recorded (#{created['id']}): {created['quantity_change']:+d}, "
                f"now {level.get('quantity', '?')} on hand."
            )
    except TransientIOError:
        # accepted by the service; only the echo is unreadable
        confirmation = "Stock movement recorded."
    print(confirmation, file=out)
    show_stock_levels(client, out)
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect stock levels and record stock movements.")
    parser.add_argument("--api-url", help="Base URL of the stock API (default: STOCKDB_API_URL).")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Show current stock levels.")
    sub.add_parser("options", help="Show selectable variants and locations.")

    record = sub.add_parser("record", help="Record a stock movement.")
    record.add_argument("--variant", required=True, help="Product variant id.")
    record.add_argument("--location", required=True, help="Location id.")
    record.add_argument("--quantity", required=True, help="Signed quantity change, e.g. 10 or -3.")
    record.add_argument("--notes", default=None)
    return parser


def main(argv: Optional[Sequence[str]] = None, *, client: Optional[StockApiClient] = None, out: TextIO = sys.stdout) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    setup_logging(settings.log_level)

    if client is None:
        if args.api_url:
            client = StockApiClient(
                args.api_url,
                api_prefix=settings.api_prefix,
                timeout=settings.http_timeout_sec,
                max_retries=settings.http_max_retries,
                backoff_sec=settings.http_backoff_sec,
            )
        else:
            client = StockApiClient.from_settings(settings)

    with client:
        if args.command == "list":
            ok = show_stock_levels(client, out)
        elif args.command == "options":
            ok = show_options(client, out)
        else:
            ok = record_movement(
                client,
                out,
                variant=args.variant,
                location=args.location,
                quantity=args.quantity,
                notes=args.notes,
            )
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
