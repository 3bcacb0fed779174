from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

from .devices import CameraDevice


@dataclass
class ScanSession:
    """One camera acquisition, from start until stop. Never persisted."""

    device: Optional[CameraDevice] = None
    handle: Any = None
    last_text: Optional[str] = None
    repeat_count: int = 0
    confirmed: bool = False
    stop_requested: bool = False
    decode_task: Optional[asyncio.Task] = None
