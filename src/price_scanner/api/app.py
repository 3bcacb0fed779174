from __future__ import annotations

from typing import Any, Dict, List, Optional

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..config import StoreSettings, load_store_settings
from ..domain.models import Product
from ..errors import DuplicateCodeError, TransientStoreError, ValidationError
from ..logging import get_logger
from ..orchestrator.flow import ProductRepository, validate_product_fields
from ..store.repository import ProductStore


LOG = get_logger("product-api")


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _product_payload(product: Product) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"found": True, "product": product.to_dict()}
    if product.warning:
        payload["warning"] = product.warning
    return payload


async def _read_product(request: Request) -> Product:
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationError("Request body must be JSON") from exc
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    missing = [k for k in ("barcode", "name", "price") if body.get(k) in (None, "")]
    if missing:
        raise ValidationError("Barcode, name, and price are required")
    return validate_product_fields(body["barcode"], body["name"], body["price"])


def create_app(
    store: Optional[ProductRepository] = None,
    *,
    settings: Optional[StoreSettings] = None,
    root_dir: Optional[str] = None,
    allow_origins: Optional[List[str]] = None,
) -> Starlette:
    """Create a Starlette app exposing the product lookup API."""

    if store is None:
        settings = settings or load_store_settings(root_dir)
        store = ProductStore.from_settings(settings)
    sheet_name = getattr(store, "sheet_name", None)

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "sheet": sheet_name})

    async def get_product(request: Request) -> JSONResponse:
        barcode = (request.query_params.get("barcode") or "").strip()
        if not barcode:
            return _error("Barcode is required", 400)
        try:
            product = await run_in_threadpool(store.find, barcode)
        except TransientStoreError as exc:
            LOG.error(f"Error fetching product {barcode!r}: {exc}")
            return _error("Failed to fetch product", 500)
        if product is None:
            return JSONResponse({"found": False, "barcode": barcode})
        return JSONResponse(_product_payload(product))

    async def add_product(request: Request) -> JSONResponse:
        try:
            product = await _read_product(request)
        except ValidationError as exc:
            return _error(str(exc), 400)
        try:
            saved = await run_in_threadpool(store.add, product)
        except DuplicateCodeError as exc:
            return _error(str(exc), 409)
        except TransientStoreError as exc:
            LOG.error(f"Error adding product {product.code!r}: {exc}")
            return _error("Failed to add product", 500)
        if not saved:
            return _error("Failed to add product", 500)
        return JSONResponse({"success": True, "product": product.to_dict()})

    async def update_product(request: Request) -> JSONResponse:
        try:
            product = await _read_product(request)
        except ValidationError as exc:
            return _error(str(exc), 400)
        try:
            updated = await run_in_threadpool(store.update, product)
        except TransientStoreError as exc:
            LOG.error(f"Error updating product {product.code!r}: {exc}")
            return _error("Failed to update product", 500)
        if not updated:
            return _error("Product not found", 404)
        return JSONResponse({"success": True, "product": product.to_dict()})

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/product", get_product, methods=["GET"]),
        Route("/api/product", add_product, methods=["POST"]),
        Route("/api/product", update_product, methods=["PUT"]),
    ]

    app = Starlette(debug=False, routes=routes)

    origins = allow_origins or ["http://localhost:3000", "http://127.0.0.1:3000"]
    if "*" in origins:
        cors_allow_origins = ["*"]
    else:
        cors_allow_origins = origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


__all__ = ["create_app"]
