from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Protocol, Sequence, Tuple

from ..errors import CameraUnavailableError
from ..logging import get_logger


LOG = get_logger("scanner-devices")

FACING_ENVIRONMENT = "environment"
FACING_USER = "user"

REAR_LABEL_HINTS: Tuple[str, ...] = ("back", "rear", "environment", "world")


@dataclass(frozen=True)
class CameraDevice:
    device_id: Any
    label: str = ""
    facing: Optional[str] = None


class CameraHandle(Protocol):
    def read_frame(self) -> Any: ...

    def release(self) -> None: ...


class CameraBackend(Protocol):
    def list_devices(self) -> List[CameraDevice]: ...

    def open(self, device: CameraDevice) -> CameraHandle: ...


def select_device(devices: Sequence[CameraDevice]) -> CameraDevice:
    """Prefer a rear-facing camera, then a rear-sounding label, then anything."""
    if not devices:
        raise CameraUnavailableError("No camera found")
    for device in devices:
        if (device.facing or "").lower() == FACING_ENVIRONMENT:
            LOG.debug(f"Selected environment-facing camera {device.label or device.device_id!r}")
            return device
    for device in devices:
        label = (device.label or "").lower()
        if any(hint in label for hint in REAR_LABEL_HINTS):
            LOG.debug(f"Selected camera by label {device.label!r}")
            return device
    LOG.debug(f"No rear camera detected; using {devices[0].label or devices[0].device_id!r}")
    return devices[0]
