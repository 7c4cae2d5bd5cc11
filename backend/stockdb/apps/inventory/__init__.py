"""
Inventory module.

Handles the stock movement ledger and the stock levels derived from it.
"""

from .router import router  # noqa: F401
from . import models  # noqa: F401
