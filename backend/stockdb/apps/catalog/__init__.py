"""
Catalog module.

Reference data the ledger points at: products, their variants (size, color,
SKU) and storage locations.
"""

from .router import router  # noqa: F401
from . import models  # noqa: F401
