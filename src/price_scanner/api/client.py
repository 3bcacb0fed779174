from typing import Any, Dict, Optional

import requests

from ..domain.models import Product
from ..errors import DuplicateCodeError, TransientStoreError, ValidationError
from ..logging import get_logger


class ProductApiClient:
    """Client for the /api/product endpoints with the ProductStore interface.

    Lets the scan flow run against a remote server instead of talking to
    the sheet directly.
    """

    def __init__(self, base_url: str, *, timeout: int = 30, session: Optional[requests.Session] = None) -> None:
        self.base = base_url.rstrip("/")
        self.timeout = int(timeout)
        self.log = get_logger("product-api-client")
        self.s = session or requests.Session()
        self.s.headers.update({"Accept": "application/json"})

    # ---------- helpers ----------
    def _url(self, path: str) -> str:
        return f"{self.base}{path}"

    def _send(self, method: str, **kwargs: Any) -> requests.Response:
        url = self._url("/api/product")
        try:
            r = self.s.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            self.log.error(f"{method} {url} failed: {e}")
            raise TransientStoreError(f"Could not reach {self.base}: {e}") from e
        if r.status_code >= 500:
            self.log.error(f"{method} {url} -> {r.status_code}: {r.text[:300]}")
            raise TransientStoreError(f"Server error {r.status_code}")
        return r

    @staticmethod
    def _error_message(r: requests.Response) -> str:
        try:
            body = r.json()
        except ValueError:
            return r.text or f"HTTP {r.status_code}"
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return f"HTTP {r.status_code}"

    def _raise_for_client_error(self, r: requests.Response, code: str) -> None:
        if r.status_code == 400:
            raise ValidationError(self._error_message(r))
        if r.status_code == 409:
            raise DuplicateCodeError(code)
        if r.status_code >= 400:
            raise TransientStoreError(f"Unexpected response {r.status_code}: {self._error_message(r)}")

    @staticmethod
    def _payload(product: Product) -> Dict[str, Any]:
        return {"barcode": product.code, "name": product.name, "price": product.price}

    # ---------- products ----------
    def find(self, code: str) -> Optional[Product]:
        r = self._send("GET", params={"barcode": code})
        self._raise_for_client_error(r, code)
        body = r.json()
        if not body.get("found"):
            return None
        p = body.get("product") or {}
        return Product(
            code=str(p.get("barcode", code)),
            name=str(p.get("name") or ""),
            price=p.get("price", 0),
            warning=body.get("warning"),
        )

    def add(self, product: Product) -> bool:
        r = self._send("POST", json=self._payload(product))
        self._raise_for_client_error(r, product.code)
        return bool(r.json().get("success"))

    def update(self, product: Product) -> bool:
        r = self._send("PUT", json=self._payload(product))
        if r.status_code == 404:
            self.log.info(f"Update skipped by server: barcode {product.code!r} not found")
            return False
        self._raise_for_client_error(r, product.code)
        return bool(r.json().get("success"))
