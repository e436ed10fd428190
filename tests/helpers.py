"""Shared fakes and builders for the test suite."""
import asyncio
import threading

import numpy as np

from facesignal.errors import PermissionDenied
from facesignal.model_provider import ModelSet
from facesignal.models import Detection, EmotionVector, FaceBox

FRAME_W, FRAME_H = 640, 480


def _ring(cx, cy, rx, ry, n, start=0.0, stop=2 * np.pi):
    t = np.linspace(start, stop, n, endpoint=(stop - start) < 2 * np.pi)
    return np.stack([cx + rx * np.cos(t), cy + ry * np.sin(t)], axis=1)


def make_landmarks(w: int = FRAME_W, h: int = FRAME_H) -> np.ndarray:
    """Neutral 68-point face (standard index layout) centred in a w x h frame."""
    cx, cy = w / 2, h / 2
    fw = min(w, h) * 0.35
    fh = fw * 1.2
    pts = np.zeros((68, 2), dtype=np.float64)
    pts[0:17] = _ring(cx, cy, fw, fh, 17, np.pi, 0.0)           # jaw, lower arc
    pts[17:22] = np.stack([np.linspace(cx - fw * 0.8, cx - fw * 0.2, 5), np.full(5, cy - fh * 0.45)], axis=1)
    pts[22:27] = np.stack([np.linspace(cx + fw * 0.2, cx + fw * 0.8, 5), np.full(5, cy - fh * 0.45)], axis=1)
    pts[27:31] = np.stack([np.full(4, cx), np.linspace(cy - fh * 0.3, cy + fh * 0.05, 4)], axis=1)
    pts[31:36] = np.stack([np.linspace(cx - fw * 0.2, cx + fw * 0.2, 5), np.full(5, cy + fh * 0.12)], axis=1)
    pts[36:42] = _ring(cx - fw * 0.45, cy - fh * 0.25, fw * 0.15, fh * 0.05, 6)
    pts[42:48] = _ring(cx + fw * 0.45, cy - fh * 0.25, fw * 0.15, fh * 0.05, 6)
    pts[48:60] = _ring(cx, cy + fh * 0.4, fw * 0.35, fh * 0.1, 12)
    pts[60:68] = _ring(cx, cy + fh * 0.4, fw * 0.25, fh * 0.05, 8)
    return pts


def make_detection(score: float = 0.9, expressions: EmotionVector | None = None, landmarks=None) -> Detection:
    return Detection(
        score=score,
        landmarks=make_landmarks() if landmarks is None else landmarks,
        expressions=expressions,
        box=FaceBox(x=200, y=120, w=240, h=260, score=score),
    )


class DummyLocator:
    def __init__(self, boxes=None):
        self.boxes = list(boxes or [])
        self.calls = 0
    def locate(self, frame):
        self.calls += 1
        return list(self.boxes)


class DummyLandmarks:
    def __init__(self, points=None):
        self.points = make_landmarks() if points is None else points
        self.boxes = []
    def predict(self, frame, box):
        self.boxes.append(box)
        return self.points


class DummyExpressions:
    def __init__(self, vector=None):
        self.vector = vector or EmotionVector(happy=0.7, neutral=0.3)
        self.chips = []
    def classify(self, chip):
        self.chips.append(chip.shape)
        return self.vector


class DummyHandle:
    """Stands in for CaptureHandle: always ready with a black frame."""
    def __init__(self, w=FRAME_W, h=FRAME_H, ready=True):
        self.frame = np.zeros((h, w, 3), dtype=np.uint8)
        self._ready = ready
        self.stop_calls = 0
    @property
    def ready(self):
        return self._ready and self.stop_calls == 0
    @property
    def video_size(self):
        return self.frame.shape[1], self.frame.shape[0]
    @property
    def stopped(self):
        return self.stop_calls > 0
    def current_frame(self):
        return self.frame.copy()
    def stop(self):
        self.stop_calls += 1


class DummyCapture:
    def __init__(self, deny=False):
        self.deny = deny
        self.handles = []
    async def start(self):
        if self.deny:
            raise PermissionDenied("Could not open camera 0")
        handle = DummyHandle()
        self.handles.append(handle)
        return handle


class ScriptedDetect:
    """Detector stand-in replaying a fixed list of results (then None)."""
    def __init__(self, results):
        self.results = list(results)
        self.calls = 0
    def __call__(self, frame, models, with_expressions=True):
        self.calls += 1
        return self.results.pop(0) if self.results else None


class GatedDetect:
    """Detector stand-in that blocks its worker thread until released."""
    def __init__(self, result):
        self.result = result
        self.entered = threading.Event()
        self.gate = threading.Event()
    def __call__(self, frame, models, with_expressions=True):
        self.entered.set()
        self.gate.wait(timeout=5)
        return self.result


def dummy_model_set() -> ModelSet:
    box = FaceBox(x=200, y=120, w=240, h=260, score=0.9)
    return ModelSet(DummyLocator([box]), DummyLandmarks(), DummyExpressions())


async def wait_for(predicate, timeout: float = 2.0, step: float = 0.005) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(step)
    return predicate()
