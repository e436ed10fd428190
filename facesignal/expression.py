"""
Facial expression classification with DeepFace.
"""
from __future__ import annotations
from pathlib import Path
from typing import Dict
import logging
import os

import numpy as np

from facesignal.models import EmotionVector

logger = logging.getLogger(__name__)

# DeepFace emotion labels -> our labels
DEEPFACE_LABELS = {
    "happy": "happy",
    "sad": "sad",
    "angry": "angry",
    "surprise": "surprised",
    "neutral": "neutral",
    "fear": "fearful",
    "disgust": "disgusted",
}

WARMUP_CHIP = (48, 48)


def to_emotion_vector(blob: Dict) -> EmotionVector:
    """
    Convert one DeepFace analyze() result into an EmotionVector.

    DeepFace reports percentages (0..100) under "emotion"; values are scaled to
    0..1 and clamped. A result without probabilities reads as all zeros.
    """
    probs = blob.get("emotion") if isinstance(blob, dict) else None
    if not isinstance(probs, dict):
        return EmotionVector()
    out: Dict[str, float] = {}
    for raw, value in probs.items():
        label = DEEPFACE_LABELS.get(str(raw).lower())
        if label is None:
            continue
        try:
            p = float(value) / 100.0
        except (TypeError, ValueError):
            continue
        out[label] = max(0.0, min(1.0, p))
    return EmotionVector.from_mapping(out)


class DeepFaceExpressionClassifier:
    """7-class expression probabilities for a face crop."""

    def __init__(self, weights_dir: Path, warmup: bool = True):
        # DeepFace keeps its weights under $DEEPFACE_HOME/.deepface/weights
        os.environ["DEEPFACE_HOME"] = str(Path(weights_dir).resolve())
        # Lazy import: heavy TF stack, and tests swap sys.modules['deepface']
        from deepface import DeepFace
        self._deepface = DeepFace
        if warmup:
            logger.debug(f"[expression] warming up DeepFace emotion model home={weights_dir}")
            self.classify(np.zeros((WARMUP_CHIP[1], WARMUP_CHIP[0], 3), dtype=np.uint8))

    def classify(self, chip: np.ndarray) -> EmotionVector:
        res = self._deepface.analyze(
            chip,
            actions=["emotion"],
            enforce_detection=False,
            detector_backend="skip",
            silent=True,
        )
        res = res if isinstance(res, list) else [res]
        r0 = res[0] if res else {}
        return to_emotion_vector(r0)
