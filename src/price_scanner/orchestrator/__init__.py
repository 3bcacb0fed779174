"""Application flow tying scans to store lookups and edits."""

from .flow import AppSession, AppState, ProductRepository, ScanFlow, validate_product_fields

__all__ = [
    "AppSession",
    "AppState",
    "ProductRepository",
    "ScanFlow",
    "validate_product_fields",
]
