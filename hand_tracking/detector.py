from __future__ import annotations

import logging
import shutil
import time
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks import python as mp_python
from mediapipe.tasks.python import vision as mp_vision

from hand_tracking.landmarks import HandMetrics, measure
from utils.config import VisionConfig, project_path
from utils.smoothing import LandmarkSmoother

logger = logging.getLogger(__name__)


@dataclass
class HandDetection:
    landmarks: np.ndarray  # (21, 3) normalized coordinates
    handedness: str
    metrics: HandMetrics


MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/hand_landmarker/float16/1/hand_landmarker.task"
)


def _ensure_model() -> Path:
    target = project_path("models", "hand_landmarker.task")
    if target.exists():
        return target
    target.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading hand landmarker model to %s", target)
    try:
        with urllib.request.urlopen(MODEL_URL) as response, target.open("wb") as fout:
            shutil.copyfileobj(response, fout)
    except Exception as exc:  # pragma: no cover - network dependent
        target.unlink(missing_ok=True)
        raise RuntimeError(
            "Failed to download MediaPipe hand landmarker model. Check your internet connection."
        ) from exc
    return target


class HandDetector:
    """MediaPipe Tasks hand landmarker in video mode with landmark smoothing."""

    def __init__(self, config: VisionConfig) -> None:
        self._config = config
        model_path = _ensure_model()
        base_options = mp_python.BaseOptions(model_asset_path=str(model_path))
        options = mp_vision.HandLandmarkerOptions(
            base_options=base_options,
            running_mode=mp_vision.RunningMode.VIDEO,
            num_hands=1,
            min_hand_detection_confidence=config.min_detection_confidence,
            min_hand_presence_confidence=config.min_tracking_confidence,
            min_tracking_confidence=config.min_tracking_confidence,
        )
        self._landmarker = mp_vision.HandLandmarker.create_from_options(options)
        self._landmark_smoother = LandmarkSmoother(config.smoothing_alpha)
        self._start = time.monotonic()
        self._last_timestamp = -1

    def process(self, frame_bgr: np.ndarray) -> Optional[HandDetection]:
        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        # video mode rejects non-increasing timestamps
        timestamp = max(int((time.monotonic() - self._start) * 1000), self._last_timestamp + 1)
        self._last_timestamp = timestamp
        result = self._landmarker.detect_for_video(mp_image, timestamp)
        if not result.hand_landmarks:
            self._landmark_smoother.reset()
            return None

        hand_landmarks = result.hand_landmarks[0]
        coords = np.array([(lm.x, lm.y, lm.z) for lm in hand_landmarks], dtype=np.float32)
        coords = self._landmark_smoother.update(coords)
        handedness = result.handedness[0][0].category_name.lower()
        return HandDetection(landmarks=coords, handedness=handedness, metrics=measure(coords))

    def close(self) -> None:
        self._landmarker.close()
