"""Tolerant matching and parsing of raw sheet rows.

Rows come straight from the Sheets API: lists of formatted cell strings,
possibly shorter than three cells, possibly including a header row. Column
order is code, name, price.
"""

from __future__ import annotations

import math
import re
from typing import Any, List, Optional, Sequence

from ..domain.models import Number, Product
from ..errors import PriceParseError
from ..logging import get_logger


LOG = get_logger("store-rows")

Row = Sequence[Any]

_PRICE_JUNK = re.compile(r"[^0-9.\-]")


def normalize_code(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def find_row_index(rows: Sequence[Row], code: Any) -> Optional[int]:
    """Return the 0-based index of the first row whose code matches.

    Every row is considered, including row 0: a sheet may or may not carry
    a header. Rows without a first cell are skipped. Comparison is an exact,
    case-sensitive match after trimming. With duplicate codes the first
    occurrence by row order wins.
    """
    target = normalize_code(code)
    if not target:
        return None
    for idx, row in enumerate(rows or ()):
        if not row:
            continue
        cell = normalize_code(row[0])
        if not cell:
            continue
        if cell == target:
            return idx
    return None


def find_row(rows: Sequence[Row], code: Any) -> Optional[Row]:
    idx = find_row_index(rows, code)
    return rows[idx] if idx is not None else None


def _as_number(value: float) -> Number:
    if value.is_integer():
        return int(value)
    return value


def _try_float(text: str) -> Optional[float]:
    try:
        value = float(text)
    except ValueError:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def parse_price(raw: Any, *, strict: bool = False) -> Number:
    """Parse a loosely formatted price.

    Direct parse first; then every character other than digits, '.' and '-'
    is dropped. If more than one '.' survives, dots are thousands separators
    and are removed too ("58.000.000" -> 58000000).

    Unparseable input returns 0 with a logged warning, or raises
    PriceParseError when ``strict`` is set.
    """
    value: Optional[float] = None
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = _try_float(str(raw))
    elif raw is not None and not isinstance(raw, bool):
        text = str(raw).strip()
        value = _try_float(text) if text else None
        if value is None and text:
            cleaned = _PRICE_JUNK.sub("", text)
            if cleaned.count(".") > 1:
                cleaned = cleaned.replace(".", "")
            value = _try_float(cleaned) if cleaned else None
    if value is not None:
        return _as_number(value)

    if strict:
        raise PriceParseError(f"invalid price: {raw!r}")
    LOG.warning("Could not parse price %r; using 0", raw)
    return 0


def _cell(row: Row, idx: int) -> Any:
    return row[idx] if len(row) > idx else None


def row_to_product(row: Row) -> Product:
    code = normalize_code(_cell(row, 0))
    name_raw = _cell(row, 1)
    name = str(name_raw).strip() if name_raw is not None else ""
    price_raw = _cell(row, 2)

    warning = None
    try:
        price = parse_price(price_raw, strict=True)
    except PriceParseError:
        price = 0
        if price_raw is not None and str(price_raw).strip():
            warning = f"Price {price_raw!r} could not be read; shown as 0"
            LOG.warning("Row for barcode %s has unreadable price %r", code, price_raw)
    return Product(code=code, name=name, price=price, warning=warning)


def text_cell(value: Any) -> str:
    """Mark a value as literal text for USER_ENTERED writes.

    The leading apostrophe stops the sheet from turning the value into a
    formula, number or date; it is not stored in the cell.
    """
    return "'" + ("" if value is None else str(value))


def product_to_row(code: str, name: str, price: Number) -> List[Any]:
    """Row for a USER_ENTERED append; code and name are written as text."""
    return [text_cell(code), text_cell(name), price]


def product_to_update(name: str, price: Number) -> List[Any]:
    """Name and price cells (B:C) of an existing row."""
    return [text_cell(name), price]
