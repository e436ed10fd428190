"""
Model loading and ownership.

The three models (face locator, landmark predictor, expression classifier)
are loaded together from MODEL_DIR; either all of them are usable or the
provider reports a ModelLoadFailure.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

import numpy as np

from facesignal.config import (
    FACE_DETECTOR_BUNDLE,
    FACE_EXPRESSION_BUNDLE,
    FACE_LANDMARK_BUNDLE,
    Settings,
)
from facesignal.errors import ModelLoadFailure
from facesignal.models import EmotionVector, FaceBox

logger = logging.getLogger(__name__)


class FaceLocator(Protocol):
    def locate(self, frame: np.ndarray) -> list[FaceBox]: ...


class LandmarkPredictor(Protocol):
    def predict(self, frame: np.ndarray, box: FaceBox) -> Optional[np.ndarray]: ...


class ExpressionClassifier(Protocol):
    def classify(self, chip: np.ndarray) -> EmotionVector: ...


class ModelSet:
    """Loaded models; read-only after construction."""

    __slots__ = ("locator", "landmarks", "expressions")

    def __init__(self, locator: FaceLocator, landmarks: LandmarkPredictor, expressions: ExpressionClassifier):
        self.locator = locator
        self.landmarks = landmarks
        self.expressions = expressions


def load_model_set(settings: Settings) -> ModelSet:
    """Blocking load of all three bundles. Raises ModelLoadFailure naming the failed bundle."""
    from facesignal.backends import LbfLandmarkPredictor, YuNetFaceLocator
    from facesignal.expression import DeepFaceExpressionClassifier

    detector_path = settings.bundle_path(FACE_DETECTOR_BUNDLE) / settings.FACE_DETECTOR_FILE
    landmark_path = settings.bundle_path(FACE_LANDMARK_BUNDLE) / settings.FACE_LANDMARK_FILE
    expression_dir = settings.bundle_path(FACE_EXPRESSION_BUNDLE)

    if not detector_path.is_file():
        raise ModelLoadFailure(FACE_DETECTOR_BUNDLE, f"missing {detector_path}")
    try:
        locator = YuNetFaceLocator(
            detector_path,
            input_size=settings.DETECT_INPUT_SIZE,
            score_threshold=settings.DETECT_SCORE_THRESHOLD,
        )
    except Exception as e:
        raise ModelLoadFailure(FACE_DETECTOR_BUNDLE, str(e)) from e

    if not expression_dir.is_dir():
        raise ModelLoadFailure(FACE_EXPRESSION_BUNDLE, f"missing directory {expression_dir}")
    try:
        expressions = DeepFaceExpressionClassifier(expression_dir)
    except Exception as e:
        raise ModelLoadFailure(FACE_EXPRESSION_BUNDLE, str(e)) from e

    if not landmark_path.is_file():
        raise ModelLoadFailure(FACE_LANDMARK_BUNDLE, f"missing {landmark_path}")
    try:
        landmarks = LbfLandmarkPredictor(landmark_path)
    except Exception as e:
        raise ModelLoadFailure(FACE_LANDMARK_BUNDLE, str(e)) from e

    return ModelSet(locator, landmarks, expressions)


class ModelProvider:
    """
    Owner of one ModelSet for a page/session.

    acquire() loads on first use (concurrent callers share one load) and counts
    references; release() drops a reference; close() is the explicit teardown.
    Models are not reloaded while the provider stays open, and a failed load is
    remembered rather than retried.
    """

    def __init__(self, settings: Settings, loader: Callable[[Settings], ModelSet] = load_model_set):
        self.s = settings
        self._loader = loader
        self._lock = asyncio.Lock()
        self._models: Optional[ModelSet] = None
        self._failure: Optional[ModelLoadFailure] = None
        self._refs = 0
        self.loads = 0

    @property
    def loaded(self) -> bool:
        return self._models is not None

    @property
    def refs(self) -> int:
        return self._refs

    async def acquire(self) -> ModelSet:
        async with self._lock:
            if self._failure is not None:
                failed = self._failure
                raise ModelLoadFailure(failed.bundle, failed.reason) from failed
            if self._models is None:
                logger.debug(f"[models] loading bundles from {self.s.MODEL_DIR}")
                self.loads += 1
                try:
                    self._models = await asyncio.to_thread(self._loader, self.s)
                except ModelLoadFailure as e:
                    self._failure = e
                except Exception as e:
                    self._failure = ModelLoadFailure("model set", str(e))
                    self._failure.__cause__ = e
                if self._failure is not None:
                    logger.error(f"[models] {self._failure}")
                    raise self._failure
                logger.debug("[models] all bundles loaded")
            self._refs += 1
            return self._models

    def release(self) -> None:
        if self._refs > 0:
            self._refs -= 1

    def close(self) -> None:
        if self._refs:
            logger.warning(f"[models] closing with {self._refs} live reference(s)")
        self._models = None
        self._refs = 0
