"""Camera scanning.

Modules:
- devices: camera device model, backend protocols, rear-camera selection
- policy: decode acceptance (immediate or confirm-by-repetition)
- session: per-acquisition scan state
- controller: scan lifecycle state machine
- opencv: OpenCV camera backend and ZBar decoder (imported on demand)
"""

from .controller import ScanController, ScanState, is_permission_failure
from .devices import CameraDevice, select_device
from .policy import ConfirmByRepetition, ImmediateAccept
from .session import ScanSession

__all__ = [
    "CameraDevice",
    "ConfirmByRepetition",
    "ImmediateAccept",
    "ScanController",
    "ScanSession",
    "ScanState",
    "is_permission_failure",
    "select_device",
]
