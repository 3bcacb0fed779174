"""
Price Scanner – scan a barcode, look up its price in a Google Sheet.

Packages:
- store: row matching, Sheets transport, product repository
- scanner: camera backends, decode policies, scan lifecycle controller
- orchestrator: application state machine tying scans to store lookups
- api: Starlette HTTP surface and its requests-based client
- cli: command line entry point
"""

__all__ = [
    "config",
    "errors",
    "logging",
]
