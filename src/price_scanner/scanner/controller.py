"""Scan lifecycle: camera acquisition, decode loop and teardown.

States: idle -> initializing -> running -> idle, with initializing falling
to error or denied when the camera cannot be acquired. The controller owns
at most one ScanSession, and therefore at most one open device handle.
"""

from __future__ import annotations

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Union

from ..errors import CameraPermissionError, CameraUnavailableError
from ..logging import get_logger
from .devices import CameraBackend, select_device
from .policy import ConfirmByRepetition, DecodePolicy
from .session import ScanSession


LOG = get_logger("scan-controller")


class ScanState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    ERROR = "error"
    DENIED = "denied"


Decoder = Callable[[Any], List[str]]
DecodeCallback = Callable[[str], Union[None, Awaitable[None]]]
StateListener = Callable[[ScanState, Optional[BaseException]], None]

_PERMISSION_HINTS = ("permission", "notallowed", "not allowed", "denied")


def is_permission_failure(exc: BaseException) -> bool:
    if isinstance(exc, (CameraPermissionError, PermissionError)):
        return True
    text = f"{type(exc).__name__} {exc}".lower()
    return any(hint in text for hint in _PERMISSION_HINTS)


class ScanController:
    def __init__(
        self,
        backend: CameraBackend,
        decoder: Decoder,
        *,
        policy: Optional[DecodePolicy] = None,
        on_decode: Optional[DecodeCallback] = None,
        on_state_change: Optional[StateListener] = None,
        stop_on_decode: bool = True,
        settle_delay: float = 0.5,
        acquire_timeout: float = 15.0,
        frame_interval: float = 0.05,
        max_missed_frames: int = 30,
        stop_timeout: float = 2.0,
    ) -> None:
        self.backend = backend
        self.decoder = decoder
        self.policy: DecodePolicy = policy or ConfirmByRepetition()
        self.on_decode = on_decode
        self.on_state_change = on_state_change
        self.stop_on_decode = stop_on_decode
        self.settle_delay = settle_delay
        self.acquire_timeout = acquire_timeout
        self.frame_interval = frame_interval
        self.max_missed_frames = max_missed_frames
        self.stop_timeout = stop_timeout

        self.state = ScanState.IDLE
        self.last_error: Optional[BaseException] = None
        self._session: Optional[ScanSession] = None
        self._should_scan = False

    @property
    def session(self) -> Optional[ScanSession]:
        return self._session

    @property
    def is_active(self) -> bool:
        return self.state in (ScanState.INITIALIZING, ScanState.RUNNING)

    def _set_state(self, state: ScanState, error: Optional[BaseException] = None) -> None:
        previous = self.state
        self.state = state
        self.last_error = error
        if previous == state and error is None:
            return
        if error is not None:
            LOG.warning(f"Scanner {previous.value} -> {state.value}: {error}")
        else:
            LOG.info(f"Scanner {previous.value} -> {state.value}")
        if self.on_state_change is not None:
            self.on_state_change(state, error)

    # ---------- external flag ----------
    async def set_scanning(self, should_scan: bool) -> None:
        if should_scan:
            await self.start()
        else:
            await self.stop()

    async def mount(self, *, auto_start: bool = True) -> None:
        """Start after a settling delay unless a stop arrives meanwhile."""
        self._should_scan = auto_start
        if not auto_start:
            return
        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)
        if self._should_scan and not self.is_active:
            await self.start()

    async def unmount(self) -> None:
        await self.stop()

    # ---------- lifecycle ----------
    async def start(self) -> None:
        self._should_scan = True
        if self._session is not None:
            if self.is_active:
                LOG.debug("Scan already active; start ignored")
                return
            await self.stop()
            self._should_scan = True

        session = ScanSession()
        self._session = session
        self._set_state(ScanState.INITIALIZING)

        loop = asyncio.get_running_loop()
        acquire = loop.run_in_executor(None, self._acquire, session)
        try:
            handle = await asyncio.wait_for(asyncio.shield(acquire), timeout=self.acquire_timeout)
        except asyncio.TimeoutError:
            acquire.add_done_callback(self._release_late)
            self._fail(session, CameraUnavailableError("Timed out waiting for camera access"))
            return
        except asyncio.CancelledError:
            session.stop_requested = True
            acquire.add_done_callback(self._release_late)
            raise
        except Exception as exc:
            self._fail(session, exc)
            return

        if session.stop_requested or session is not self._session:
            LOG.info("Stop requested while the camera was starting; releasing it")
            self._release_handle(handle)
            return

        session.handle = handle
        self._set_state(ScanState.RUNNING)
        session.decode_task = asyncio.create_task(self._decode_loop(session))

    async def stop(self) -> None:
        self._should_scan = False
        session = self._session
        self._session = None
        if session is not None:
            session.stop_requested = True
            task = session.decode_task
            if task is not None and task is not asyncio.current_task() and not task.done():
                # let the loop finish its in-flight frame read before releasing
                done, _ = await asyncio.wait({task}, timeout=self.stop_timeout)
                if not done:
                    LOG.warning("Decode loop did not stop in time; cancelling it")
                    task.cancel()
            if session.handle is not None:
                self._release_handle(session.handle)
                session.handle = None
        self._set_state(ScanState.IDLE)

    # ---------- internals ----------
    def _acquire(self, session: ScanSession) -> Any:
        devices = self.backend.list_devices()
        device = select_device(devices)
        session.device = device
        LOG.info(f"Requesting camera {device.label or device.device_id!r}")
        return self.backend.open(device)

    def _fail(self, session: ScanSession, exc: BaseException) -> None:
        if session.stop_requested or session is not self._session:
            LOG.info(f"Camera start failed after stop was requested: {exc}")
            return
        self._session = None
        state = ScanState.DENIED if is_permission_failure(exc) else ScanState.ERROR
        self._set_state(state, exc)

    def _release_late(self, fut: "asyncio.Future[Any]") -> None:
        if fut.cancelled() or fut.exception() is not None:
            return
        LOG.info("Releasing camera acquired after the start was abandoned")
        self._release_handle(fut.result())

    def _release_handle(self, handle: Any) -> None:
        try:
            handle.release()
        except Exception as exc:
            LOG.warning(f"Camera release failed: {exc}")

    def _read_and_decode(self, handle: Any) -> Optional[List[str]]:
        frame = handle.read_frame()
        if frame is None:
            return None
        try:
            return list(self.decoder(frame))
        except Exception as exc:
            LOG.warning(f"Decode error: {exc}")
            return []

    async def _notify(self, text: str) -> None:
        if self.on_decode is None:
            return
        result = self.on_decode(text)
        if inspect.isawaitable(result):
            await result

    async def _decode_loop(self, session: ScanSession) -> None:
        handle = session.handle
        missed = 0
        try:
            while not session.stop_requested:
                texts = await asyncio.to_thread(self._read_and_decode, handle)
                if session.stop_requested:
                    break
                if texts is None:
                    missed += 1
                    if missed >= self.max_missed_frames:
                        raise CameraUnavailableError("Camera stopped delivering frames")
                elif texts:
                    missed = 0
                    # one candidate per frame; keep the tracked text while it is in view
                    text = session.last_text if session.last_text in texts else texts[0]
                    if self.policy.accept(session, text):
                        LOG.info(f"Barcode detected: {text}")
                        await self._notify(text)
                        if self.stop_on_decode and not session.stop_requested:
                            await self.stop()
                else:
                    missed = 0
                if session.stop_requested:
                    break
                await asyncio.sleep(self.frame_interval)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOG.error(f"Decode loop failed: {exc}")
            if session is self._session and not session.stop_requested:
                session.stop_requested = True
                self._session = None
                if session.handle is not None:
                    self._release_handle(session.handle)
                    session.handle = None
                self._set_state(ScanState.ERROR, exc)

