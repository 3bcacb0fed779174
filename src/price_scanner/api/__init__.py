"""HTTP surface for product lookup and its client."""

from .app import create_app
from .client import ProductApiClient

__all__ = [
    "ProductApiClient",
    "create_app",
]
