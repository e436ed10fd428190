"""
Single-face inference step: locate -> landmarks -> (optional) expressions.
"""
from __future__ import annotations
from typing import Optional
import logging

import numpy as np

from facesignal.model_provider import ModelSet
from facesignal.models import Detection, FaceBox

logger = logging.getLogger(__name__)


def crop_face(frame: np.ndarray, box: FaceBox) -> np.ndarray:
    H, W = frame.shape[:2]
    x0 = max(0, min(box.x, W)); y0 = max(0, min(box.y, H))
    x1 = max(x0, min(box.x + box.w, W)); y1 = max(y0, min(box.y + box.h, H))
    return frame[y0:y1, x0:x1]


def detect_single_face(frame: np.ndarray, models: ModelSet, with_expressions: bool = True) -> Optional[Detection]:
    """
    Run the detection chain on one frame.

    Returns None when no face is found (a normal outcome). Multiple faces are
    not tracked: only the highest-scoring one is used.
    """
    boxes = models.locator.locate(frame)
    if not boxes:
        return None
    best = max(boxes, key=lambda b: b.score)
    if len(boxes) > 1:
        logger.debug(f"[detect] {len(boxes)} faces; keeping score={best.score:.3f}")

    points = models.landmarks.predict(frame, best)
    if points is None:
        logger.debug("[detect] landmark fit failed; treating as no face")
        return None

    expressions = None
    if with_expressions:
        chip = crop_face(frame, best)
        expressions = models.expressions.classify(chip if chip.size else frame)

    return Detection(score=best.score, landmarks=points, expressions=expressions, box=best)
