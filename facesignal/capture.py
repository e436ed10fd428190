"""
Camera capture: opens an OpenCV video source and keeps the latest frame
available as a continuously updating surface.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Callable, Optional, Tuple, Union

import cv2
import numpy as np

from facesignal.config import Settings
from facesignal.errors import PermissionDenied, StaleFrame

logger = logging.getLogger(__name__)

Source = Union[int, str]

READ_RETRY_SLEEP = 0.01
JOIN_TIMEOUT = 1.0


class CaptureHandle:
    """Owns one opened device and the reader thread publishing its frames."""

    def __init__(self, cap, source: Source):
        self.source = source
        self._cap = cap
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._run = True
        self._stopped = False
        self._released = False
        self._thread = threading.Thread(target=self._reader, name=f"capture-{source}", daemon=True)
        self._thread.start()

    def _reader(self):
        try:
            while self._run:
                ok, frame = self._cap.read()
                if not ok or frame is None:
                    time.sleep(READ_RETRY_SLEEP)
                    continue
                with self._lock:
                    self._frame = frame
        finally:
            # the device is only released once no read() is in progress
            self._release()

    def _release(self):
        with self._lock:
            if self._released:
                return
            self._released = True
        try:
            self._cap.release()
        except Exception:
            logger.exception(f"[capture] release failed for source {self.source!r}")

    @property
    def ready(self) -> bool:
        """True once at least one frame was decoded and the device is still running."""
        with self._lock:
            return self._run and self._frame is not None

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def released(self) -> bool:
        return self._released

    @property
    def video_size(self) -> Tuple[int, int]:
        """Native (width, height) of the latest frame."""
        with self._lock:
            if self._frame is None:
                return 0, 0
            h, w = self._frame.shape[:2]
            return w, h

    def current_frame(self) -> np.ndarray:
        with self._lock:
            if self._frame is None:
                raise StaleFrame(f"no frame decoded yet from source {self.source!r}")
            return self._frame.copy()

    def stop(self) -> None:
        """
        Stop the reader and release the device. Safe to call repeatedly.

        Blocks for up to JOIN_TIMEOUT; call it off the event loop. If the reader
        is still stuck in read() afterwards, it releases the device on exit.
        """
        if self._stopped:
            return
        self._stopped = True
        self._run = False
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=JOIN_TIMEOUT)
        if self._thread.is_alive():
            logger.warning(f"[capture] reader for {self.source!r} still blocked in read(); release deferred")
        else:
            self._release()
        with self._lock:
            self._frame = None
        logger.debug(f"[capture] stopped source {self.source!r}")


class CaptureSource:
    """Factory for capture handles (video only)."""

    def __init__(self, settings: Settings,
                 source: Optional[Source] = None,
                 opener: Optional[Callable[[Source], object]] = None):
        self.s = settings
        self.source = settings.CAMERA_INDEX if source is None else source
        self._opener = opener

    def _open(self) -> CaptureHandle:
        logger.debug(f"[capture] opening source {self.source!r}")
        try:
            cap = (self._opener or cv2.VideoCapture)(self.source)
        except Exception as e:
            raise PermissionDenied(f"Could not open camera {self.source!r}: {e}") from e
        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise PermissionDenied(f"Could not open camera {self.source!r}")
        return CaptureHandle(cap, self.source)

    async def start(self) -> CaptureHandle:
        """Open the device off the event loop; raises PermissionDenied on refusal/absence."""
        return await asyncio.to_thread(self._open)

    @staticmethod
    def stop(handle: Optional[CaptureHandle]) -> None:
        if handle is None:
            return
        handle.stop()
