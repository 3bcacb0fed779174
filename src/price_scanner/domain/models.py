from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

Number = Union[int, float]


@dataclass
class Product:
    code: str   # text; leading zeros are significant
    name: str
    price: Number
    warning: Optional[str] = None  # set when the stored price had to be coerced

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape used by the HTTP API (`barcode`, not `code`)."""
        return {"barcode": self.code, "name": self.name, "price": self.price}


def format_vnd(price: Number) -> str:
    """Format like vi-VN currency: dot thousands, no decimals, trailing ₫."""
    s = f"{round(price):,}"
    return s.replace(",", ".") + " ₫"
