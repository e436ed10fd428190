"""
Pydantic data models shared by the pipeline and the API.
"""
from __future__ import annotations
from typing import Literal, Mapping, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from facesignal.triangulation import LANDMARK_COUNT

EMOTION_LABELS = ("happy", "sad", "angry", "surprised", "neutral", "fearful", "disgusted")

CameraState = Literal["idle", "starting", "ready", "no_camera"]


class EmotionVector(BaseModel):
    model_config = ConfigDict(frozen=True)

    happy: float = Field(0.0, ge=0.0, le=1.0)
    sad: float = Field(0.0, ge=0.0, le=1.0)
    angry: float = Field(0.0, ge=0.0, le=1.0)
    surprised: float = Field(0.0, ge=0.0, le=1.0)
    neutral: float = Field(0.0, ge=0.0, le=1.0)
    fearful: float = Field(0.0, ge=0.0, le=1.0)
    disgusted: float = Field(0.0, ge=0.0, le=1.0)

    @classmethod
    def from_mapping(cls, probs: Mapping[str, float] | None) -> "EmotionVector":
        """Build from a label->probability mapping; unknown labels are ignored, missing ones read 0."""
        probs = probs or {}
        return cls(**{k: float(probs.get(k) or 0.0) for k in EMOTION_LABELS})

    def averaged_with(self, other: "EmotionVector") -> "EmotionVector":
        return EmotionVector(**{
            k: (getattr(self, k) + getattr(other, k)) / 2 for k in EMOTION_LABELS
        })

    def top(self) -> tuple[Optional[str], float]:
        label = max(EMOTION_LABELS, key=lambda k: getattr(self, k))
        value = getattr(self, label)
        if value <= 0.0:
            return None, 0.0
        return label, value


class AnalysisState(BaseModel):
    """Smoothed summary reported to the enclosing application."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    frame_count: int = Field(0, ge=0, alias="frameCount")
    confidence_level: float = Field(0.0, ge=0.0, le=1.0, alias="confidenceLevel")
    emotions: EmotionVector = Field(default_factory=EmotionVector)

    def snapshot(self) -> dict:
        """Wire form: {frameCount, confidenceLevel, emotions: {...}}."""
        return self.model_dump(by_alias=True)


class FaceBox(BaseModel):
    """Located face rectangle in model pixel space."""
    model_config = ConfigDict(frozen=True)

    x: int
    y: int
    w: int
    h: int
    score: float


class Detection(BaseModel):
    """A single-face detection: score, 68 landmarks, optional expressions."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    score: float
    landmarks: np.ndarray
    expressions: Optional[EmotionVector] = None
    box: Optional[FaceBox] = None

    @field_validator("landmarks", mode="before")
    @classmethod
    def _landmark_set(cls, value):
        pts = np.array(value, dtype=np.float64).reshape(-1, 2)
        if pts.shape != (LANDMARK_COUNT, 2):
            raise ValueError(f"expected {LANDMARK_COUNT} landmark points, got {pts.shape[0]}")
        pts.setflags(write=False)
        return pts


class LiveStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    running: bool
    started_at: float | None = Field(None, alias="startedAt")
    camera: CameraState = "idle"
    models_loaded: bool = Field(False, alias="modelsLoaded")
    state: AnalysisState = Field(default_factory=AnalysisState)
