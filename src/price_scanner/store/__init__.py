"""Spreadsheet-backed product store.

Modules:
- rows: tolerant row matching and price parsing
- sheets: Google Sheets values API transport
- repository: find/add/update of products on top of both
"""

from .repository import ProductStore
from .rows import find_row, find_row_index, parse_price
from .sheets import SheetsClient

__all__ = [
    "ProductStore",
    "SheetsClient",
    "find_row",
    "find_row_index",
    "parse_price",
]
