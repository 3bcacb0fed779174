import logging
import os
import sys
from typing import Optional


ROOT_LOGGER = "price_scanner"
FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATEFMT = "%Y-%m-%d %H:%M:%S"


def _level_from_env(value: Optional[str]) -> int:
    if not value:
        return logging.INFO
    name = value.strip().upper()
    if name == "WARN":
        name = "WARNING"
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return root

    level = _level_from_env(os.environ.get("LOG_LEVEL"))
    root.setLevel(level)
    formatter = logging.Formatter(fmt=FORMAT, datefmt=DATEFMT)

    # stderr keeps stdout free for the CLI's JSON output
    sh = logging.StreamHandler(sys.stderr)
    sh.setFormatter(formatter)
    root.addHandler(sh)

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as exc:
            root.warning(f"LOG_FILE {log_file!r} could not be opened ({exc}); logging to stderr only")
        else:
            fh.setFormatter(formatter)
            root.addHandler(fh)

    root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a child of the `price_scanner` logger, e.g. `price_scanner.store-rows`.

    Handlers live on the package logger only, configured on first use from
    LOG_LEVEL (default INFO) and LOG_FILE (optional, appended to).
    """
    _configure_root()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
