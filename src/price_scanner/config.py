import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

from .errors import ConfigError
from .logging import get_logger

log = get_logger("config")

DEFAULT_SHEET_NAME = "Sheet1"


@dataclass
class StoreSettings:
    service_account_email: str
    private_key: str
    spreadsheet_id: str
    sheet_name: str = DEFAULT_SHEET_NAME
    timeout: int = 30
    max_attempts: int = 3
    reject_duplicates: bool = False


@dataclass
class ScanSettings:
    confirmations: int = 3
    settle_delay: float = 0.5
    acquire_timeout: float = 15.0


def _dotenv_path(start_dir: str) -> Optional[str]:
    """Nearest .env in start_dir or one of its parents."""
    start = Path(start_dir).resolve()
    for d in (start, *start.parents):
        candidate = d / ".env"
        if candidate.is_file():
            return str(candidate)
    return None


def _read_dotenv(dotenv_dir: Optional[str]) -> Dict[str, str]:
    """Return key/value pairs of the nearest .env; does not mutate os.environ."""
    path = _dotenv_path(dotenv_dir or os.getcwd())
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir or '.')}")
        return {}
    values = {k: v for k, v in dotenv_values(path).items() if v is not None}
    log.debug(f"Loaded {len(values)} key(s) from .env at {path}")
    return values


class _Lookup:
    """Environment first, then .env."""

    def __init__(self, dotenv_dir: Optional[str]) -> None:
        self._dotenv_dir = dotenv_dir
        self._env: Optional[Dict[str, str]] = None

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        v = os.environ.get(key)
        if v is not None and v.strip():
            return v.strip()
        if self._env is None:
            self._env = _read_dotenv(self._dotenv_dir)
        v = self._env.get(key)
        if v is not None and v.strip():
            return v.strip()
        return default


def _as_int(raw: Optional[str], key: str, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc


def _as_float(raw: Optional[str], key: str, default: float) -> float:
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc


def _as_bool(raw: Optional[str]) -> bool:
    return (raw or "").lower() in {"1", "true", "yes", "on"}


def load_store_settings(dotenv_dir: Optional[str] = None) -> StoreSettings:
    """Return Google Sheets settings from env or .env.

    GOOGLE_SERVICE_ACCOUNT_EMAIL, GOOGLE_PRIVATE_KEY and GOOGLE_SHEETS_ID are
    required; GOOGLE_SHEET_NAME defaults to "Sheet1".
    """
    cfg = _Lookup(dotenv_dir)
    email = cfg.get("GOOGLE_SERVICE_ACCOUNT_EMAIL")
    key = cfg.get("GOOGLE_PRIVATE_KEY")
    sheet_id = cfg.get("GOOGLE_SHEETS_ID")
    missing = [
        name
        for name, value in (
            ("GOOGLE_SERVICE_ACCOUNT_EMAIL", email),
            ("GOOGLE_PRIVATE_KEY", key),
            ("GOOGLE_SHEETS_ID", sheet_id),
        )
        if not value
    ]
    if missing:
        raise ConfigError(f"Missing Google Sheets configuration: {', '.join(missing)}")

    settings = StoreSettings(
        service_account_email=email,
        private_key=key,
        spreadsheet_id=sheet_id,
        sheet_name=cfg.get("GOOGLE_SHEET_NAME", DEFAULT_SHEET_NAME),
        timeout=_as_int(cfg.get("SHEETS_TIMEOUT"), "SHEETS_TIMEOUT", 30),
        max_attempts=max(1, _as_int(cfg.get("SHEETS_MAX_ATTEMPTS"), "SHEETS_MAX_ATTEMPTS", 3)),
        reject_duplicates=_as_bool(cfg.get("SHEETS_REJECT_DUPLICATES")),
    )
    log.info(f"Using spreadsheet {settings.spreadsheet_id} (sheet '{settings.sheet_name}')")
    return settings


def load_scan_settings(dotenv_dir: Optional[str] = None) -> ScanSettings:
    cfg = _Lookup(dotenv_dir)
    return ScanSettings(
        confirmations=max(1, _as_int(cfg.get("SCAN_CONFIRMATIONS"), "SCAN_CONFIRMATIONS", 3)),
        settle_delay=_as_float(cfg.get("SCAN_SETTLE_DELAY"), "SCAN_SETTLE_DELAY", 0.5),
        acquire_timeout=_as_float(cfg.get("SCAN_ACQUIRE_TIMEOUT"), "SCAN_ACQUIRE_TIMEOUT", 15.0),
    )
