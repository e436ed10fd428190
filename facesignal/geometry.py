"""
Coordinate transforms between model pixel space and display space.

Scaling and mirroring are kept separate: points are only ever scaled, the
horizontal mirror is applied once to a whole rendered image.
"""
from __future__ import annotations
from typing import Tuple

import cv2
import numpy as np

Size = Tuple[int, int]  # (width, height)


def scale_factors(display_size: Size, model_size: Size) -> Tuple[float, float]:
    """Independent horizontal/vertical scale: display dimension / native video dimension."""
    dw, dh = display_size
    mw, mh = model_size
    if mw <= 0 or mh <= 0:
        raise ValueError(f"model size must be positive, got {model_size}")
    return dw / float(mw), dh / float(mh)


def to_display(points: np.ndarray, scale: Tuple[float, float]) -> np.ndarray:
    """Map (N, 2) model-space points to display space: (x * sx, y * sy)."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    return pts * np.array(scale, dtype=np.float64)


def fit_display_size(native: Size, width: int | None = None, height: int | None = None) -> Size:
    """Resolve the on-screen size; one missing side keeps the native aspect ratio."""
    nw, nh = native
    if width and height:
        return int(width), int(height)
    if width and nw > 0:
        return int(width), max(1, int(round(nh * width / float(nw))))
    if height and nh > 0:
        return max(1, int(round(nw * height / float(nh)))), int(height)
    return int(nw), int(nh)


def mirror(image: np.ndarray) -> np.ndarray:
    """Horizontal flip of a whole image (presentation transform)."""
    return cv2.flip(image, 1)
