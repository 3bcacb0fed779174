"""Exception taxonomy shared by the store, scanner, flow and HTTP layers.

A missing product is never an exception: lookups return ``None`` and updates
return ``False``.
"""


class PriceScannerError(Exception):
    pass


class ConfigError(PriceScannerError):
    pass


class ValidationError(PriceScannerError):
    """Caller supplied missing or malformed fields; never retried."""


class PriceParseError(ValidationError, ValueError):
    pass


class DuplicateCodeError(PriceScannerError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Product with barcode {code!r} already exists")
        self.code = code


class TransientStoreError(PriceScannerError):
    """Network or auth failure while talking to the tabular store."""


class CameraError(PriceScannerError):
    pass


class CameraPermissionError(CameraError):
    pass


class CameraUnavailableError(CameraError):
    pass


class InvalidTransitionError(PriceScannerError):
    pass
