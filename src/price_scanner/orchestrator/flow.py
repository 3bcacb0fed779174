"""Application flow: scan -> lookup -> show / add / edit.

States and transitions:

    scanning --decode--> loading --found--> found --edit--> editing
    loading --miss--> not-found --submit--> found
    editing --submit--> found | not-found (row vanished) ; --cancel--> found
    any --reset--> scanning ; error --retry--> scanning

Store failures at loading, add or update land in `error` with a message for
the user. Store calls run in a worker thread so the event loop stays free.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Protocol

from ..domain.models import Product
from ..errors import (
    DuplicateCodeError,
    InvalidTransitionError,
    PriceParseError,
    TransientStoreError,
    ValidationError,
)
from ..logging import get_logger
from ..scanner.controller import ScanController, ScanState
from ..store.rows import normalize_code, parse_price


LOG = get_logger("orchestrator-flow")

MSG_CONNECTION = "Could not reach the product store. Please try again."
MSG_SAVE_FAILED = "Could not save the product. Please try again."
MSG_CAMERA_DENIED = "Camera access was denied. Allow camera access in your browser or system settings, then retry."
MSG_CAMERA_ERROR = "Could not start the camera. Check that a camera is available and retry."


class ProductRepository(Protocol):
    def find(self, code: str) -> Optional[Product]: ...

    def add(self, product: Product) -> bool: ...

    def update(self, product: Product) -> bool: ...


class AppState(str, Enum):
    SCANNING = "scanning"
    LOADING = "loading"
    FOUND = "found"
    NOT_FOUND = "not-found"
    EDITING = "editing"
    ERROR = "error"


@dataclass
class AppSession:
    state: AppState = AppState.SCANNING
    product: Optional[Product] = None
    scanned_code: str = ""
    error: str = ""
    busy: bool = False


def validate_product_fields(code: Any, name: Any, price: Any) -> Product:
    """Return a Product from user input or raise ValidationError."""
    if isinstance(code, bool) or not isinstance(code, (str, int)):
        raise ValidationError("barcode is required")
    code_s = normalize_code(code)
    if not code_s:
        raise ValidationError("barcode is required")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required")
    if price is None or (isinstance(price, str) and not price.strip()):
        raise ValidationError("price is required")
    try:
        value = parse_price(price, strict=True)
    except PriceParseError as exc:
        raise ValidationError(f"price must be a number, got {price!r}") from exc
    if value < 0:
        raise ValidationError("price must not be negative")
    return Product(code=code_s, name=name.strip(), price=value)


class ScanFlow:
    def __init__(self, store: ProductRepository, scanner: Optional[ScanController] = None) -> None:
        self.store = store
        self.scanner = scanner
        self.session = AppSession()
        self._listeners: List[Callable[[AppSession], None]] = []
        if scanner is not None:
            scanner.on_decode = self.handle_decode
            scanner.on_state_change = self._on_scanner_state

    @property
    def state(self) -> AppState:
        return self.session.state

    def add_listener(self, listener: Callable[[AppSession], None]) -> None:
        self._listeners.append(listener)

    # ---------- helpers ----------
    def _transition(self, state: AppState) -> None:
        previous = self.session.state
        self.session.state = state
        LOG.info(f"Flow {previous.value} -> {state.value}")
        for listener in list(self._listeners):
            listener(self.session)

    def _require(self, state: AppState, action: str) -> None:
        if self.session.state != state:
            raise InvalidTransitionError(f"Cannot {action} while {self.session.state.value}")

    def _fail(self, message: str, exc: Optional[BaseException] = None) -> None:
        if exc is not None:
            LOG.error(f"{message} ({type(exc).__name__}: {exc})")
        else:
            LOG.error(message)
        self.session.error = message
        self._transition(AppState.ERROR)

    def _on_scanner_state(self, state: ScanState, error: Optional[BaseException]) -> None:
        if self.session.state != AppState.SCANNING:
            return
        if state == ScanState.DENIED:
            self._fail(MSG_CAMERA_DENIED, error)
        elif state == ScanState.ERROR:
            self._fail(MSG_CAMERA_ERROR, error)

    # ---------- scanning ----------
    async def start(self) -> None:
        """Enter scanning with the camera enabled, as on page load."""
        if self.session.state != AppState.SCANNING:
            self._transition(AppState.SCANNING)
        if self.scanner is not None:
            await self.scanner.mount(auto_start=True)

    async def handle_decode(self, code: str) -> None:
        if self.session.state != AppState.SCANNING:
            LOG.debug(f"Ignoring decode {code!r} while {self.session.state.value}")
            return
        self.session.scanned_code = normalize_code(code)
        self.session.product = None
        self.session.error = ""
        self._transition(AppState.LOADING)
        if self.scanner is not None:
            await self.scanner.set_scanning(False)

        try:
            product = await asyncio.to_thread(self.store.find, self.session.scanned_code)
        except TransientStoreError as exc:
            self._fail(MSG_CONNECTION, exc)
            return

        if product is None:
            self._transition(AppState.NOT_FOUND)
        else:
            self.session.product = product
            self._transition(AppState.FOUND)

    # ---------- add ----------
    async def submit_new(self, name: Any, price: Any) -> None:
        self._require(AppState.NOT_FOUND, "add a product")
        product = validate_product_fields(self.session.scanned_code, name, price)
        self.session.busy = True
        try:
            saved = await asyncio.to_thread(self.store.add, product)
        except DuplicateCodeError as exc:
            self._fail(f"Barcode {product.code} already exists. Scan it again to edit it.", exc)
            return
        except TransientStoreError as exc:
            self._fail(MSG_CONNECTION, exc)
            return
        finally:
            self.session.busy = False
        if not saved:
            self._fail(MSG_SAVE_FAILED)
            return
        self.session.product = product
        self._transition(AppState.FOUND)

    # ---------- edit ----------
    def begin_edit(self) -> None:
        self._require(AppState.FOUND, "edit")
        self._transition(AppState.EDITING)

    def cancel_edit(self) -> None:
        self._require(AppState.EDITING, "cancel editing")
        self._transition(AppState.FOUND)

    async def submit_edit(self, name: Any, price: Any) -> None:
        self._require(AppState.EDITING, "save changes")
        current = self.session.product
        code = current.code if current is not None else self.session.scanned_code
        product = validate_product_fields(code, name, price)
        self.session.busy = True
        try:
            updated = await asyncio.to_thread(self.store.update, product)
        except TransientStoreError as exc:
            self._fail(MSG_CONNECTION, exc)
            return
        finally:
            self.session.busy = False
        if not updated:
            LOG.warning(f"Barcode {code!r} disappeared from the store before the update")
            self.session.product = None
            self.session.scanned_code = code
            self._transition(AppState.NOT_FOUND)
            return
        self.session.product = product
        self._transition(AppState.FOUND)

    # ---------- reset ----------
    async def reset(self) -> None:
        self.session.product = None
        self.session.scanned_code = ""
        self.session.error = ""
        self.session.busy = False
        self._transition(AppState.SCANNING)
        if self.scanner is not None:
            await self.scanner.set_scanning(True)

    async def retry(self) -> None:
        self._require(AppState.ERROR, "retry")
        await self.reset()
