from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Sequence

from ..config import load_scan_settings, load_store_settings
from ..domain.models import Product, format_vnd
from ..errors import ConfigError, DuplicateCodeError, TransientStoreError, ValidationError
from ..logging import get_logger
from ..orchestrator.flow import AppState, ProductRepository, ScanFlow, validate_product_fields
from ..scanner.controller import ScanController
from ..scanner.policy import ConfirmByRepetition, ImmediateAccept
from ..store.repository import ProductStore

LOG = get_logger("cli-main")


def _build_store(ns: argparse.Namespace) -> ProductRepository:
    api_url = getattr(ns, "api_url", None)
    if api_url:
        from ..api.client import ProductApiClient

        LOG.info(f"Using product API at {api_url}")
        return ProductApiClient(api_url, timeout=ns.timeout)
    settings = load_store_settings(os.getcwd())
    return ProductStore.from_settings(settings)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected a whole number, got {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def _add_store_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--api-url", help="Talk to a running price-scanner API instead of the sheet directly")
    p.add_argument("--timeout", type=int, default=30, help="HTTP timeout in seconds for --api-url")


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False))


# ---------- one-shot commands ----------
def _lookup(ns: argparse.Namespace) -> int:
    store = _build_store(ns)
    product = store.find(ns.barcode)
    if product is None:
        _print_json({"found": False, "barcode": ns.barcode})
        return 1
    payload = {"found": True, "product": product.to_dict()}
    if product.warning:
        payload["warning"] = product.warning
    _print_json(payload)
    return 0


def _add(ns: argparse.Namespace) -> int:
    product = validate_product_fields(ns.barcode, ns.name, ns.price)
    store = _build_store(ns)
    if not store.add(product):
        LOG.error("Store reported the product was not saved")
        return 1
    _print_json({"success": True, "product": product.to_dict()})
    return 0


def _update(ns: argparse.Namespace) -> int:
    product = validate_product_fields(ns.barcode, ns.name, ns.price)
    store = _build_store(ns)
    if not store.update(product):
        _print_json({"success": False, "error": "Product not found", "barcode": product.code})
        return 1
    _print_json({"success": True, "product": product.to_dict()})
    return 0


# ---------- interactive scan ----------
async def _ask(prompt: str) -> str:
    return (await asyncio.to_thread(input, prompt)).strip()


def _show(product: Product) -> None:
    print(f"\n  {product.code}  {product.name}\n  {format_vnd(product.price)}")
    if product.warning:
        print(f"  ! {product.warning}")


async def _interactive(flow: ScanFlow) -> None:
    changed = asyncio.Event()
    flow.add_listener(lambda _session: changed.set())
    await flow.start()
    try:
        while True:
            changed.clear()
            session = flow.session
            state = session.state
            if state in (AppState.SCANNING, AppState.LOADING):
                await changed.wait()
                continue

            if state == AppState.FOUND and session.product is not None:
                _show(session.product)
                answer = (await _ask("[e]dit, [enter] scan next, [q]uit: ")).lower()
                if answer == "q":
                    return
                if answer == "e":
                    flow.begin_edit()
                else:
                    await flow.reset()

            elif state == AppState.NOT_FOUND:
                print(f"\nBarcode {session.scanned_code} is not in the sheet. Leave the name empty to skip.")
                name = await _ask("Name: ")
                if not name:
                    await flow.reset()
                    continue
                price = await _ask("Price (VND): ")
                try:
                    await flow.submit_new(name, price)
                except ValidationError as exc:
                    print(f"  ! {exc}")

            elif state == AppState.EDITING and session.product is not None:
                current = session.product
                name = await _ask(f"Name [{current.name}]: ") or current.name
                price = await _ask(f"Price [{current.price}]: ") or current.price
                try:
                    await flow.submit_edit(name, price)
                except ValidationError as exc:
                    print(f"  ! {exc}")
                    flow.cancel_edit()

            elif state == AppState.ERROR:
                print(f"\n  ! {session.error}")
                answer = (await _ask("[enter] retry, [q]uit: ")).lower()
                if answer == "q":
                    return
                await flow.retry()
            else:
                await flow.reset()
    finally:
        if flow.scanner is not None:
            await flow.scanner.unmount()


def _scan(ns: argparse.Namespace) -> int:
    from ..scanner.opencv import OpenCVCameraBackend, ZBarDecoder

    store = _build_store(ns)
    cfg = load_scan_settings(os.getcwd())
    if ns.immediate:
        policy = ImmediateAccept()
    else:
        policy = ConfirmByRepetition(ns.confirmations if ns.confirmations is not None else cfg.confirmations)
    controller = ScanController(
        OpenCVCameraBackend(device_index=ns.camera),
        ZBarDecoder(),
        policy=policy,
        settle_delay=cfg.settle_delay,
        acquire_timeout=cfg.acquire_timeout,
    )
    flow = ScanFlow(store, controller)
    LOG.info("Point the camera at a barcode. Press Ctrl+C to stop.")
    try:
        asyncio.run(_interactive(flow))
    except (KeyboardInterrupt, EOFError):
        LOG.info("Scan interrupted by user. Exiting.")
    return 0


def _serve(ns: argparse.Namespace) -> int:
    from ..api.app import create_app
    import uvicorn

    allow_origins = ns.allow_origins
    if allow_origins and "*" in allow_origins:
        allow_origins = ["*"]
    app = create_app(root_dir=os.getcwd(), allow_origins=allow_origins)
    uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    LOG.debug(f"CLI invoked with arguments: {provided}")

    parser = argparse.ArgumentParser(
        prog="price-scanner",
        description="Scan barcodes and look up or maintain product prices in a Google Sheet.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the /api/product HTTP API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--log-level", default="info")
    serve.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve.set_defaults(handler=_serve)

    lookup = subparsers.add_parser("lookup", help="Look up a product by barcode.")
    lookup.add_argument("--barcode", required=True)
    _add_store_args(lookup)
    lookup.set_defaults(handler=_lookup)

    for name, handler, help_text in (
        ("add", _add, "Append a new product row."),
        ("update", _update, "Change name and price of an existing product."),
    ):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("--barcode", required=True)
        p.add_argument("--name", required=True)
        p.add_argument("--price", required=True)
        _add_store_args(p)
        p.set_defaults(handler=handler)

    scan = subparsers.add_parser("scan", help="Interactive camera scanning in the terminal.")
    scan.add_argument("--camera", type=int, help="Camera index to use instead of auto-selection")
    scan.add_argument("--confirmations", type=_positive_int, help="Identical reads required before accepting a barcode")
    scan.add_argument("--immediate", action="store_true", help="Accept the first read (no confirmation)")
    _add_store_args(scan)
    scan.set_defaults(handler=_scan)

    args = parser.parse_args(provided)
    try:
        code = args.handler(args)
    except ConfigError as exc:
        LOG.error(str(exc))
        return 2
    except ValidationError as exc:
        LOG.error(f"Invalid input: {exc}")
        return 2
    except (TransientStoreError, DuplicateCodeError) as exc:
        LOG.error(str(exc))
        return 1
    LOG.info(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
