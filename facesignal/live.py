"""
Live (real-time) facial-signal analysis.

LiveFaceAnalyzer owns one camera handle, a reference on the provider's models
and the sampling timer. Every SAMPLE_INTERVAL_MS it:
- runs single-face detection on the latest frame (off the event loop)
- folds the detection into the smoothed AnalysisState and reports it
- redraws the landmark mesh overlay when MESH_ENABLED

This module also provides a live preview window (run_live_overlay) showing the
mirrored camera image with the overlay and a status line on top.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

import cv2
import numpy as np

from facesignal.aggregator import TemporalAggregator
from facesignal.capture import CaptureHandle, CaptureSource
from facesignal.config import Settings
from facesignal.detector import detect_single_face
from facesignal.errors import ModelLoadFailure, PermissionDenied, StaleFrame
from facesignal.geometry import Size, fit_display_size
from facesignal.model_provider import ModelProvider, ModelSet
from facesignal.models import AnalysisState, CameraState, Detection, LiveStatus
from facesignal.overlay import OverlayCanvas, compose_preview, draw_face_mesh
from facesignal.reporter import StateReporter
from facesignal.scheduler import SamplingScheduler

logger = logging.getLogger(__name__)

PREVIEW_FPS = 30
WINDOW_NAME = "Interview Live (q to quit)"

DetectFn = Callable[[np.ndarray, ModelSet, bool], Optional[Detection]]
DisplaySizeFn = Callable[[Size], Size]


# -----------------------------------------------------------------------------
# LiveFaceAnalyzer: mount/unmount lifecycle around the sampling loop
# -----------------------------------------------------------------------------
class LiveFaceAnalyzer:
    """Camera + models + timer for one live session."""

    def __init__(self,
                 settings: Settings,
                 provider: ModelProvider,
                 capture: Optional[CaptureSource] = None,
                 reporter: Optional[StateReporter] = None,
                 display_size: Optional[DisplaySizeFn] = None,
                 detect: DetectFn = detect_single_face):
        self.s = settings
        self.provider = provider
        self.capture = capture or CaptureSource(settings)
        self.reporter = reporter or StateReporter()
        self.canvas = OverlayCanvas()
        self.camera: CameraState = "idle"
        self.started_at: Optional[float] = None
        self._display_size = display_size
        self._detect = detect
        self._aggregator = TemporalAggregator()
        self._handle: Optional[CaptureHandle] = None
        self._models: Optional[ModelSet] = None
        self._scheduler: Optional[SamplingScheduler] = None
        self._mounted = False
        # bumped on every mount/unmount; results from an older generation are dropped
        self._generation = 0

    # ---- state ----
    @property
    def state(self) -> AnalysisState:
        return self._aggregator.state

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def scheduler(self) -> Optional[SamplingScheduler]:
        return self._scheduler

    def status(self) -> LiveStatus:
        return LiveStatus(
            running=self._mounted,
            started_at=self.started_at if self._mounted else None,
            camera=self.camera,
            models_loaded=self._models is not None,
            state=self.state,
        )

    def display_size(self, video_size: Size) -> Size:
        if self._display_size is not None:
            return self._display_size(video_size)
        return fit_display_size(video_size, self.s.DISPLAY_WIDTH, self.s.DISPLAY_HEIGHT)

    # ---- lifecycle ----
    async def mount(self) -> None:
        if self._mounted:
            await self.unmount()
        self._mounted = True
        self._generation += 1
        generation = self._generation
        self.started_at = time.time()
        self._aggregator.reset()
        self.canvas.clear()

        # 1) models before the camera
        try:
            models: Optional[ModelSet] = await self.provider.acquire()
        except ModelLoadFailure:
            logger.warning("[live] models unavailable; analysis disabled for this session")
            models = None
        if generation != self._generation:
            if models is not None:
                self.provider.release()
            return
        self._models = models

        # 2) camera
        self.camera = "starting"
        try:
            handle: Optional[CaptureHandle] = await self.capture.start()
        except PermissionDenied as e:
            logger.warning(f"[live] {e}; continuing without camera")
            handle = None
        if generation != self._generation:
            await asyncio.to_thread(CaptureSource.stop, handle)
            return
        self._handle = handle
        self.camera = "ready" if handle is not None else "no_camera"

        # 3) timer
        self._scheduler = SamplingScheduler(self._analyze, self.s.sample_interval)
        self._scheduler.start()
        logger.debug(f"[live] mounted camera={self.camera} models={models is not None} "
                     f"interval={self.s.SAMPLE_INTERVAL_MS}ms mesh={self.s.MESH_ENABLED}")

    async def unmount(self) -> None:
        if not self._mounted:
            return
        self._mounted = False
        self._generation += 1
        scheduler, self._scheduler = self._scheduler, None
        handle, self._handle = self._handle, None

        # (a) timer, (b) camera, (c) in-flight pass
        if scheduler is not None:
            scheduler.cancel()
        await asyncio.to_thread(CaptureSource.stop, handle)
        if scheduler is not None:
            await scheduler.drain()

        if self._models is not None:
            self._models = None
            self.provider.release()
        self.camera = "idle"
        self.canvas.clear()
        logger.debug("[live] unmounted")

    async def __aenter__(self) -> "LiveFaceAnalyzer":
        await self.mount()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.unmount()

    # ---- one sampling tick ----
    async def _analyze(self) -> None:
        handle, models = self._handle, self._models
        if handle is None or models is None or not handle.ready:
            return
        try:
            frame = handle.current_frame()
        except StaleFrame:
            return
        generation = self._generation
        video_size = (frame.shape[1], frame.shape[0])

        detection = await asyncio.to_thread(self._detect, frame, models, self.s.WITH_EXPRESSIONS)
        if generation != self._generation:
            logger.debug("[live] dropping result from a finished session")
            return

        self.canvas.resize(*self.display_size(video_size))
        self.canvas.clear()
        if detection is None:
            return

        state = self._aggregator.update(detection)
        self.reporter.publish(state)
        if self.s.MESH_ENABLED:
            draw_face_mesh(self.canvas, detection.landmarks, video_size, fill=self.s.MESH_FILL_ENABLED)

    # ---- preview ----
    def preview_frame(self) -> Optional[np.ndarray]:
        """Mirrored display-size frame with the current overlay, or None before the first frame."""
        handle = self._handle
        if handle is None or not handle.ready:
            return None
        try:
            frame = handle.current_frame()
        except StaleFrame:
            return None
        size = self.display_size((frame.shape[1], frame.shape[0]))
        if (frame.shape[1], frame.shape[0]) != size:
            frame = cv2.resize(frame, size, interpolation=cv2.INTER_AREA)
        canvas = self.canvas if self.canvas.size == size else OverlayCanvas(*size)
        return compose_preview(frame, canvas, self.state, mirrored=self.s.MIRROR)


# -----------------------------------------------------------------------------
# Live camera preview window
# -----------------------------------------------------------------------------
async def _live_overlay(settings: Settings, camera_index: int) -> None:
    provider = ModelProvider(settings)
    reporter = StateReporter(lambda st: logger.debug(f"[live] state {st.snapshot()}"))
    analyzer = LiveFaceAnalyzer(settings, provider, CaptureSource(settings, source=camera_index), reporter)
    await analyzer.mount()
    try:
        if analyzer.camera == "no_camera":
            raise RuntimeError(f"Could not open camera index {camera_index}")
        while True:
            frame = analyzer.preview_frame()
            if frame is not None:
                cv2.imshow(WINDOW_NAME, frame)
            if (cv2.waitKey(1) & 0xFF) == ord("q"):
                break
            await asyncio.sleep(1.0 / PREVIEW_FPS)
    finally:
        await analyzer.unmount()
        provider.close()
        cv2.destroyAllWindows()


def run_live_overlay(settings: Settings, camera_index: Optional[int] = None) -> None:
    """
    Open the webcam, analyze a frame every SAMPLE_INTERVAL_MS and show the
    mirrored preview with the landmark mesh (when MESH_ENABLED).

    Press 'q' to quit.
    """
    cam_idx = settings.CAMERA_INDEX if camera_index is None else camera_index
    asyncio.run(_live_overlay(settings, cam_idx))
