"""
OpenCV inference backends: face locator (YuNet) and 68-point landmarks (LBF facemark).
"""
from __future__ import annotations
from pathlib import Path
from typing import List, Optional
import logging

import cv2
import numpy as np

from facesignal.models import FaceBox
from facesignal.triangulation import LANDMARK_COUNT

logger = logging.getLogger(__name__)


def _resize_for_detect(img: np.ndarray, target: int):
    """Downscale so the longer side equals `target`; returns (image, scale)."""
    H, W = img.shape[:2]
    longest = max(H, W)
    if longest <= target:
        return img, 1.0
    scale = target / float(longest)
    small = cv2.resize(img, (max(1, int(W * scale)), max(1, int(H * scale))), interpolation=cv2.INTER_AREA)
    return small, scale


class YuNetFaceLocator:
    """Face localization with cv2.FaceDetectorYN on a downscaled copy of the frame."""

    def __init__(self, model_path: Path, input_size: int = 416, score_threshold: float = 0.5):
        self.input_size = int(input_size)
        self._net = cv2.FaceDetectorYN.create(
            str(model_path), "", (self.input_size, self.input_size), float(score_threshold)
        )

    def locate(self, frame: np.ndarray) -> List[FaceBox]:
        small, scale = _resize_for_detect(frame, self.input_size)
        h, w = small.shape[:2]
        self._net.setInputSize((w, h))
        _, faces = self._net.detect(small)
        if faces is None:
            return []
        H, W = frame.shape[:2]
        boxes: List[FaceBox] = []
        for row in faces:
            x, y, bw, bh = (float(v) / scale for v in row[:4])
            # clamp to frame
            x0 = max(0, min(int(x), W - 1)); y0 = max(0, min(int(y), H - 1))
            bw = max(1, min(int(bw), W - x0)); bh = max(1, min(int(bh), H - y0))
            boxes.append(FaceBox(x=x0, y=y0, w=bw, h=bh, score=float(row[-1])))
        return boxes


class LbfLandmarkPredictor:
    """68-point landmarks with the OpenCV contrib LBF facemark model."""

    def __init__(self, model_path: Path):
        if not hasattr(cv2, "face"):
            raise RuntimeError("cv2.face is unavailable; install opencv-contrib-python")
        self._facemark = cv2.face.createFacemarkLBF()
        self._facemark.loadModel(str(model_path))

    def predict(self, frame: np.ndarray, box: FaceBox) -> Optional[np.ndarray]:
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY) if frame.ndim == 3 else frame
        rects = np.array([[box.x, box.y, box.w, box.h]], dtype=np.int32)
        ok, shapes = self._facemark.fit(gray, rects)
        if not ok or shapes is None or len(shapes) == 0:
            return None
        pts = np.asarray(shapes[0], dtype=np.float64).reshape(-1, 2)
        if pts.shape[0] != LANDMARK_COUNT:
            logger.debug(f"[landmarks] unexpected point count {pts.shape[0]}")
            return None
        return pts
