"""Overlay canvas & face mesh rendering.

- OverlayCanvas: transparent BGRA surface sized to the displayed video rectangle
- draw_face_mesh: contour, optional fill, triangulated mesh and point markers
- compose_preview: mirrored preview frame with the overlay and a status line

Each drawing pass is rasterized on its own coverage layer and then composited
with its own colour/alpha, so passes never leak style into each other.
"""
from __future__ import annotations
from typing import Optional, Tuple

import cv2
import numpy as np

from facesignal.geometry import Size, mirror, scale_factors, to_display
from facesignal.models import AnalysisState
from facesignal.triangulation import TRIANGULATION, iter_triangles

# BGR colours with alpha, matching the web overlay
CONTOUR_COLOR, CONTOUR_ALPHA = (120, 220, 50), 0.7
SHADOW_COLOR, SHADOW_ALPHA = (0, 0, 0), 0.15
FILL_COLOR, FILL_ALPHA = (128, 255, 0), 0.2
MESH_COLOR, MESH_ALPHA = (128, 255, 0), 0.5
POINT_COLOR, POINT_ALPHA = (128, 255, 0), 0.95
POINT_RADIUS = 2

SHIFT = 4  # fractional bits for sub-pixel coordinates
_ONE = 1 << SHIFT


class OverlayCanvas:
    """Transparent drawing surface (BGRA, straight alpha)."""

    def __init__(self, width: int = 0, height: int = 0):
        self.image = np.zeros((max(0, int(height)), max(0, int(width)), 4), dtype=np.uint8)

    @property
    def size(self) -> Size:
        h, w = self.image.shape[:2]
        return w, h

    @property
    def empty(self) -> bool:
        w, h = self.size
        return w == 0 or h == 0

    def resize(self, width: int, height: int) -> None:
        """Track the display rectangle; a size change reallocates (and so clears) the surface."""
        width, height = max(0, int(width)), max(0, int(height))
        if (width, height) != self.size:
            self.image = np.zeros((height, width, 4), dtype=np.uint8)

    def clear(self) -> None:
        self.image[...] = 0

    def is_blank(self) -> bool:
        return not self.image[..., 3].any()

    def layer(self) -> np.ndarray:
        h, w = self.image.shape[:2]
        return np.zeros((h, w), dtype=np.uint8)

    def paint(self, coverage: np.ndarray, color: Tuple[int, int, int], alpha: float) -> None:
        """Source-over composite of a solid colour through an 8-bit coverage mask."""
        a = (coverage.astype(np.float32) / 255.0) * float(alpha)
        if not a.any():
            return
        dst = self.image.astype(np.float32) / 255.0
        dst_a = dst[..., 3]
        keep = dst_a * (1.0 - a)
        out_a = a + keep
        src = np.asarray(color, dtype=np.float32) / 255.0
        rgb = src[None, None, :] * a[..., None] + dst[..., :3] * keep[..., None]
        rgb /= np.where(out_a > 0, out_a, 1.0)[..., None]
        self.image[..., :3] = np.clip(rgb * 255.0 + 0.5, 0, 255).astype(np.uint8)
        self.image[..., 3] = np.clip(out_a * 255.0 + 0.5, 0, 255).astype(np.uint8)

    def to_png(self, mirrored: bool = False) -> bytes:
        img = mirror(self.image) if mirrored else self.image
        ok, buf = cv2.imencode(".png", img)
        if not ok:
            raise RuntimeError("PNG encoding of the overlay failed")
        return buf.tobytes()


def _fixed(points: np.ndarray) -> np.ndarray:
    return np.round(points * _ONE).astype(np.int32)


def draw_face_mesh(canvas: OverlayCanvas,
                   landmarks: np.ndarray,
                   video_size: Size,
                   fill: bool = False,
                   triangulation: Tuple[int, ...] = TRIANGULATION) -> int:
    """Clear the canvas and draw the landmark overlay scaled from video to canvas size.

    Args:
        canvas: target surface, already sized to the display rectangle
        landmarks: (68, 2) points in native video pixels
        video_size: native (width, height) of the video the landmarks came from
        fill: also fill the closed contour
        triangulation: flat index table read three at a time

    Returns:
        Number of triangles drawn.
    """
    canvas.clear()
    if canvas.empty:
        return 0

    pts = _fixed(to_display(landmarks, scale_factors(canvas.size, video_size)))
    outline = pts.reshape(-1, 1, 2)

    # 1) closed contour through all points in index order, with a soft shadow
    layer = canvas.layer()
    cv2.polylines(layer, [outline], True, 255, thickness=1, lineType=cv2.LINE_AA, shift=SHIFT)
    canvas.paint(cv2.GaussianBlur(layer, (0, 0), 1.0), SHADOW_COLOR, SHADOW_ALPHA)
    canvas.paint(layer, CONTOUR_COLOR, CONTOUR_ALPHA)

    # 2) optional face fill
    if fill:
        layer = canvas.layer()
        cv2.fillPoly(layer, [outline], 255, lineType=cv2.LINE_AA, shift=SHIFT)
        canvas.paint(layer, FILL_COLOR, FILL_ALPHA)

    # 3) triangulated mesh
    layer = canvas.layer()
    drawn = 0
    for a, b, c in iter_triangles(triangulation):
        tri = pts[[a, b, c]].reshape(-1, 1, 2)
        cv2.polylines(layer, [tri], True, 255, thickness=1, lineType=cv2.LINE_AA, shift=SHIFT)
        drawn += 1
    canvas.paint(layer, MESH_COLOR, MESH_ALPHA)

    # 4) point markers
    layer = canvas.layer()
    for x, y in pts:
        cv2.circle(layer, (int(x), int(y)), POINT_RADIUS * _ONE, 255, -1, lineType=cv2.LINE_AA, shift=SHIFT)
    canvas.paint(layer, POINT_COLOR, POINT_ALPHA)

    return drawn


def composite(frame: np.ndarray, overlay: np.ndarray) -> np.ndarray:
    """Alpha-blend a BGRA overlay onto a BGR frame of the same size."""
    if frame.shape[:2] != overlay.shape[:2]:
        raise ValueError(f"overlay {overlay.shape[:2]} does not match frame {frame.shape[:2]}")
    a = overlay[..., 3:4].astype(np.float32) / 255.0
    out = overlay[..., :3].astype(np.float32) * a + frame.astype(np.float32) * (1.0 - a)
    return np.clip(out + 0.5, 0, 255).astype(np.uint8)


def draw_hud(frame: np.ndarray, state: AnalysisState,
             color: Tuple[int, int, int] = (0, 255, 0)) -> np.ndarray:
    """Write a one-line status (frames / confidence / top emotion) on the frame in place."""
    if state.frame_count == 0:
        cv2.putText(frame, "NO_FACE", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (0, 0, 255), 2, cv2.LINE_AA)
        return frame
    label, p = state.emotions.top()
    text = f"frames={state.frame_count} conf={state.confidence_level:.2f}"
    if label:
        text += f" {label} {p:.2f}"
    cv2.putText(frame, text, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 2, cv2.LINE_AA)
    return frame


def compose_preview(frame: np.ndarray,
                    canvas: OverlayCanvas,
                    state: Optional[AnalysisState] = None,
                    mirrored: bool = True) -> np.ndarray:
    """Resize the frame to the canvas rectangle, mirror both layers and blend them."""
    if not canvas.empty and frame.shape[:2] != canvas.image.shape[:2]:
        frame = cv2.resize(frame, canvas.size, interpolation=cv2.INTER_AREA)
    video = mirror(frame) if mirrored else frame.copy()
    if not canvas.empty:
        overlay = mirror(canvas.image) if mirrored else canvas.image
        video = composite(video, overlay)
    if state is not None:
        draw_hud(video, state)
    return video
