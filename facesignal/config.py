"""
Configuration for the live facial-signal pipeline.
"""
from pathlib import Path
from pydantic import BaseModel
import math
import os


def _env_bool(name: str, default: str) -> bool:
    return (os.getenv(name, default) or default).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    return int(raw) if raw else None


DEFAULT_SAMPLE_INTERVAL_MS = 200.0
REDUCED_SAMPLE_INTERVAL_MS = 500.0

# Fixed sub-paths of the three model bundles under MODEL_DIR
FACE_DETECTOR_BUNDLE = "tiny_face_detector"
FACE_EXPRESSION_BUNDLE = "face_expression"
FACE_LANDMARK_BUNDLE = "face_landmark_68"


class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    MODEL_DIR: str = os.getenv("MODEL_DIR", "models")
    FACE_DETECTOR_FILE: str = os.getenv("FACE_DETECTOR_FILE", "face_detection_yunet_2023mar.onnx")
    FACE_LANDMARK_FILE: str = os.getenv("FACE_LANDMARK_FILE", "lbfmodel.yaml")
    DETECT_INPUT_SIZE: int = int(os.getenv("DETECT_INPUT_SIZE", "416"))
    DETECT_SCORE_THRESHOLD: float = float(os.getenv("DETECT_SCORE_THRESHOLD", "0.5"))

    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    SAMPLE_INTERVAL_MS: float = float(os.getenv("SAMPLE_INTERVAL_MS", str(DEFAULT_SAMPLE_INTERVAL_MS)))
    WITH_EXPRESSIONS: bool = _env_bool("WITH_EXPRESSIONS", "true")

    MESH_ENABLED: bool = _env_bool("MESH_ENABLED", "false")
    MESH_FILL_ENABLED: bool = _env_bool("MESH_FILL_ENABLED", "false")
    MIRROR: bool = _env_bool("MIRROR", "true")
    DISPLAY_WIDTH: int | None = _env_int("DISPLAY_WIDTH")
    DISPLAY_HEIGHT: int | None = _env_int("DISPLAY_HEIGHT")

    def __init__(self, **data):
        super().__init__(**data)
        # Normalize the sampling interval; non-positive values fall back to full mode
        if not (math.isfinite(self.SAMPLE_INTERVAL_MS) and self.SAMPLE_INTERVAL_MS > 0):
            object.__setattr__(self, "SAMPLE_INTERVAL_MS", DEFAULT_SAMPLE_INTERVAL_MS)
        if self.DETECT_INPUT_SIZE <= 0:
            object.__setattr__(self, "DETECT_INPUT_SIZE", 416)
        for name in ("DISPLAY_WIDTH", "DISPLAY_HEIGHT"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                object.__setattr__(self, name, None)

    @property
    def sample_interval(self) -> float:
        """Sampling period in seconds."""
        return float(self.SAMPLE_INTERVAL_MS) / 1000.0

    def bundle_path(self, bundle: str) -> Path:
        return Path(self.MODEL_DIR) / bundle
