"""OpenCV camera backend and ZBar decoder.

Imported only by the interactive scan command so that the API server and the
tests do not need a camera stack.
"""

from __future__ import annotations

import os
import re
import sys
from typing import Any, List, Optional

import cv2
from pyzbar.pyzbar import ZBarSymbol, decode

from ..errors import CameraPermissionError, CameraUnavailableError
from ..logging import get_logger
from .devices import CameraDevice


LOG = get_logger("scanner-opencv")

V4L_SYSFS = "/sys/class/video4linux"

# Linear retail and logistics symbologies only.
BARCODE_SYMBOLS = [
    ZBarSymbol.EAN13,
    ZBarSymbol.EAN8,
    ZBarSymbol.CODE128,
    ZBarSymbol.CODE39,
    ZBarSymbol.UPCA,
    ZBarSymbol.UPCE,
    ZBarSymbol.I25,
]


class OpenCVCameraHandle:
    def __init__(self, capture: "cv2.VideoCapture", device: CameraDevice) -> None:
        self.capture = capture
        self.device = device

    def read_frame(self) -> Optional[Any]:
        ok, frame = self.capture.read()
        if not ok:
            return None
        return frame

    def release(self) -> None:
        self.capture.release()
        LOG.info(f"Released camera {self.device.label or self.device.device_id!r}")


class OpenCVCameraBackend:
    def __init__(
        self,
        *,
        device_index: Optional[int] = None,
        max_probe: int = 4,
        frame_width: int = 1280,
        frame_height: int = 720,
    ) -> None:
        self.device_index = device_index
        self.max_probe = max_probe
        self.frame_width = frame_width
        self.frame_height = frame_height

    def _list_v4l(self) -> List[CameraDevice]:
        devices: List[CameraDevice] = []
        try:
            entries = sorted(os.listdir(V4L_SYSFS))
        except OSError:
            return devices
        for entry in entries:
            m = re.match(r"^video(\d+)$", entry)
            if not m:
                continue
            label = ""
            try:
                with open(os.path.join(V4L_SYSFS, entry, "name"), "r", encoding="utf-8") as f:
                    label = f.read().strip()
            except OSError:
                pass
            devices.append(CameraDevice(device_id=int(m.group(1)), label=label))
        return devices

    def _probe(self) -> List[CameraDevice]:
        devices: List[CameraDevice] = []
        for index in range(self.max_probe):
            cap = cv2.VideoCapture(index)
            try:
                if cap.isOpened():
                    devices.append(CameraDevice(device_id=index, label=f"camera {index}"))
            finally:
                cap.release()
        return devices

    def list_devices(self) -> List[CameraDevice]:
        if self.device_index is not None:
            return [CameraDevice(device_id=self.device_index, label=f"camera {self.device_index}")]
        devices = self._list_v4l() if sys.platform.startswith("linux") else []
        if not devices:
            devices = self._probe()
        LOG.debug(f"Video input devices: {[d.label or d.device_id for d in devices]}")
        return devices

    def open(self, device: CameraDevice) -> OpenCVCameraHandle:
        node = f"/dev/video{device.device_id}"
        if sys.platform.startswith("linux") and os.path.exists(node) and not os.access(node, os.R_OK | os.W_OK):
            raise CameraPermissionError(f"Permission denied for {node}")
        cap = cv2.VideoCapture(device.device_id)
        if not cap.isOpened():
            cap.release()
            raise CameraUnavailableError(f"Could not open camera {device.label or device.device_id!r}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.frame_width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.frame_height)
        LOG.info(f"Opened camera {device.label or device.device_id!r}")
        return OpenCVCameraHandle(cap, device)


class ZBarDecoder:
    """Callable returning the barcode texts found in a BGR frame."""

    def __init__(self, symbols: Optional[List[ZBarSymbol]] = None) -> None:
        self.symbols = symbols or BARCODE_SYMBOLS

    def __call__(self, frame: Any) -> List[str]:
        if frame is None:
            return []
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if getattr(frame, "ndim", 2) == 3 else frame
        texts: List[str] = []
        for sym in decode(gray, symbols=self.symbols):
            try:
                text = sym.data.decode("utf-8").strip()
            except UnicodeDecodeError:
                continue
            if text:
                texts.append(text)
        return texts
