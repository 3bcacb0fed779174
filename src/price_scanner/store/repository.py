from __future__ import annotations

from typing import Any, List, Optional, Protocol

from ..config import DEFAULT_SHEET_NAME, StoreSettings
from ..domain.models import Product
from ..errors import DuplicateCodeError
from ..logging import get_logger
from .rows import find_row_index, normalize_code, product_to_row, product_to_update, row_to_product
from .sheets import SheetsClient, a1_range


LOG = get_logger("product-store")


class ValuesBackend(Protocol):
    def get_values(self, a1: str) -> List[List[Any]]: ...

    def append_values(self, a1: str, values: List[List[Any]]) -> Any: ...

    def update_values(self, a1: str, values: List[List[Any]]) -> Any: ...


class ProductStore:
    """Products kept in a sheet as rows of (code, name, price).

    There is no cache and no index: every call re-reads the full A:C range.
    Transport failures surface as TransientStoreError from the backend.
    """

    def __init__(
        self,
        sheets: ValuesBackend,
        *,
        sheet_name: str = DEFAULT_SHEET_NAME,
        reject_duplicates: bool = False,
    ) -> None:
        self.sheets = sheets
        self.sheet_name = sheet_name or DEFAULT_SHEET_NAME
        self.reject_duplicates = reject_duplicates

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "ProductStore":
        client = SheetsClient.from_service_account(
            settings.service_account_email,
            settings.private_key,
            settings.spreadsheet_id,
            timeout=settings.timeout,
            max_attempts=settings.max_attempts,
        )
        return cls(client, sheet_name=settings.sheet_name, reject_duplicates=settings.reject_duplicates)

    @property
    def _columns(self) -> str:
        return a1_range(self.sheet_name, "A:C")

    def _rows(self) -> List[List[Any]]:
        return self.sheets.get_values(self._columns)

    def find(self, code: str) -> Optional[Product]:
        rows = self._rows()
        idx = find_row_index(rows, code)
        if idx is None:
            LOG.info(f"Barcode {code!r} not found ({len(rows)} row(s) scanned)")
            return None
        product = row_to_product(rows[idx])
        LOG.info(f"Barcode {code!r} found at row {idx + 1}: {product.name!r} @ {product.price}")
        return product

    def add(self, product: Product) -> bool:
        code = normalize_code(product.code)
        if self.reject_duplicates and find_row_index(self._rows(), code) is not None:
            LOG.warning(f"Refusing to append duplicate barcode {code!r}")
            raise DuplicateCodeError(code)
        self.sheets.append_values(self._columns, [product_to_row(code, product.name, product.price)])
        LOG.info(f"Appended product {code!r}: {product.name!r} @ {product.price}")
        return True

    def update(self, product: Product) -> bool:
        """Overwrite name and price of the matching row; the code cell is untouched."""
        code = normalize_code(product.code)
        idx = find_row_index(self._rows(), code)
        if idx is None:
            LOG.info(f"Update skipped: barcode {code!r} not found")
            return False
        row_number = idx + 1
        target = a1_range(self.sheet_name, f"B{row_number}:C{row_number}")
        self.sheets.update_values(target, [product_to_update(product.name, product.price)])
        LOG.info(f"Updated row {row_number} for barcode {code!r}: {product.name!r} @ {product.price}")
        return True
