import asyncio
import os
import re
import sys
import threading
import types
from typing import Any, List, Optional

import pytest

# Ensure src/ is importable when tests run from repo root
sys.path.insert(0, os.path.abspath("src"))

from price_scanner.scanner.devices import CameraDevice  # noqa: E402
from price_scanner.store.repository import ProductStore  # noqa: E402

_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")
_CELL_RANGE = re.compile(r"!([A-Z]+)(\d+):([A-Z]+)(\d+)$")


class FakeSheet:
    """In-memory stand-in for the Sheets values API.

    Values come back as formatted strings, the way the real API returns them.
    Writes mimic USER_ENTERED: a leading apostrophe forces text, numeric
    looking strings become numbers (and lose leading zeros), and strings
    starting with "=" are evaluated as formulas.
    """

    def __init__(self, rows: Optional[List[List[Any]]] = None) -> None:
        self.rows: List[List[str]] = [[str(c) for c in r] for r in (rows or [])]
        self.calls: List[tuple] = []
        self.fail: Optional[BaseException] = None

    def _check(self) -> None:
        if self.fail is not None:
            raise self.fail

    @staticmethod
    def _user_entered(value: Any) -> str:
        if isinstance(value, str):
            if value.startswith("'"):
                return value[1:]
            if value.startswith("="):
                return f"#FORMULA({value[1:]})"
            if _NUMERIC.match(value):
                number = float(value)
                return str(int(number)) if number.is_integer() else str(number)
            return value
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    def get_values(self, a1: str) -> List[List[str]]:
        self.calls.append(("get", a1))
        self._check()
        return [list(r) for r in self.rows]

    def append_values(self, a1: str, values: List[List[Any]]) -> dict:
        self.calls.append(("append", a1, values))
        self._check()
        for row in values:
            self.rows.append([self._user_entered(v) for v in row])
        return {}

    def update_values(self, a1: str, values: List[List[Any]]) -> dict:
        self.calls.append(("update", a1, values))
        self._check()
        m = _CELL_RANGE.search(a1)
        assert m, f"unexpected range {a1}"
        first_col = ord(m.group(1)) - ord("A")
        row_idx = int(m.group(2)) - 1
        for offset, row in enumerate(values):
            target = self.rows[row_idx + offset]
            for col, value in enumerate(row):
                idx = first_col + col
                while len(target) <= idx:
                    target.append("")
                target[idx] = self._user_entered(value)
        return {}


@pytest.fixture
def sheet() -> FakeSheet:
    return FakeSheet(
        [
            ["Barcode", "Name", "Price"],
            ["8934563138165", "Mì Hảo Hảo", "4500"],
            ["0012345", "Nước suối", "5000"],
            ["  8936049  ", "Bánh quy", "58,000"],
            ["", "orphan row", "1"],
            ["123"],
        ]
    )


@pytest.fixture
def store(sheet: FakeSheet) -> ProductStore:
    return ProductStore(sheet)


# ---------- camera fakes ----------

class FakeHandle:
    """Frames are lists of decoded texts; None means the camera gave no frame."""

    def __init__(self, frames, release_error=None):
        self.frames = list(frames)
        self.released = False
        self.reads = 0
        self.release_error = release_error

    def read_frame(self):
        self.reads += 1
        if self.frames:
            return self.frames.pop(0)
        return []

    def release(self):
        self.released = True
        if self.release_error is not None:
            raise self.release_error


class FakeCameraBackend:
    def __init__(self, frames=(), devices=None, open_error=None, gate=None, release_error=None):
        self.frames = list(frames)
        self.devices = devices if devices is not None else [
            CameraDevice(device_id=0, label="Front Camera", facing="user"),
            CameraDevice(device_id=1, label="Back Camera"),
        ]
        self.open_error = open_error
        self.gate = gate
        self.release_error = release_error
        self.opened = []
        self.handles = []

    def list_devices(self):
        return list(self.devices)

    def open(self, device):
        if self.gate is not None:
            self.gate.wait(5)
        if self.open_error is not None:
            raise self.open_error
        handle = FakeHandle(self.frames, release_error=self.release_error)
        self.opened.append(device)
        self.handles.append(handle)
        return handle


def echo_decoder(frame):
    return list(frame)


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def camera():
    """Factory for fake camera backends plus helpers."""
    return types.SimpleNamespace(
        backend=FakeCameraBackend,
        decoder=echo_decoder,
        wait_until=wait_until,
        gate=threading.Event,
    )
