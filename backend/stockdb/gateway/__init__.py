"""
Client side of the stock ledger API.

`StockApiClient` wraps the HTTP routes; `stockdb.scripts.stock_console`
is the terminal front end built on it.
"""

from .client import StockApiClient  # noqa: F401
