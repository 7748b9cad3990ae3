from __future__ import annotations

from typing import Optional

import numpy as np

from hand_tracking.landmarks import finger_extended
from utils.config import Gesture, GestureConfig


class GestureStabilizer:
    """Only switches label once a candidate has held for a few frames."""

    def __init__(self, config: GestureConfig) -> None:
        self._config = config
        self._active_label = Gesture.NONE
        self._candidate: Optional[Gesture] = None
        self._frames = 0
        self._cooldown = 0

    def update(self, label: Gesture) -> Gesture:
        if self._cooldown > 0:
            self._cooldown -= 1
        if label != self._candidate:
            self._candidate = label
            self._frames = 0
        self._frames += 1
        if (
            self._frames >= self._config.stability_frames
            and self._cooldown == 0
            and label != self._active_label
        ):
            self._active_label = label
            self._cooldown = self._config.cooldown_frames
        return self._active_label

    def reset(self) -> None:
        self._active_label = Gesture.NONE
        self._candidate = None
        self._frames = 0
        self._cooldown = 0


class GestureClassifier:
    """Maps the continuous openness value (and finger pose) to a discrete gesture."""

    def __init__(self, config: GestureConfig) -> None:
        self._config = config
        self._stabilizer = GestureStabilizer(config)

    def raw_label(self, openness: Optional[float], landmarks: Optional[np.ndarray] = None) -> Gesture:
        if openness is None:
            return Gesture.NONE
        if landmarks is not None and self._is_pointing(landmarks):
            return Gesture.POINTING_UP
        if openness > self._config.open_threshold:
            return Gesture.OPEN_PALM
        if openness < self._config.closed_threshold:
            return Gesture.CLOSED_FIST
        return Gesture.NONE

    def classify(self, openness: Optional[float], landmarks: Optional[np.ndarray] = None) -> Gesture:
        return self._stabilizer.update(self.raw_label(openness, landmarks))

    def reset(self) -> None:
        self._stabilizer.reset()

    def _is_pointing(self, landmarks: np.ndarray) -> bool:
        if not finger_extended(landmarks, 1):
            return False
        others = [finger_extended(landmarks, i) for i in range(2, 5)]
        index_tip, index_pip = landmarks[8], landmarks[6]
        # image y grows downward
        return not any(others) and index_tip[1] < index_pip[1]
