from __future__ import annotations

from typing import Iterable, Optional

import numpy as np

HAND_LANDMARKS = 21


class ExponentialSmoother:
    """Scalar/vector exponential moving average."""

    def __init__(self, alpha: float) -> None:
        self.alpha = float(np.clip(alpha, 1e-4, 0.999))
        self._state: Optional[np.ndarray] = None

    def update(self, value: Iterable[float]) -> np.ndarray:
        vec = np.asarray(value, dtype=np.float32)
        if self._state is None:
            self._state = vec.copy()
        else:
            self._state = self.alpha * vec + (1.0 - self.alpha) * self._state
        return self._state

    def reset(self) -> None:
        self._state = None

    @property
    def value(self) -> Optional[np.ndarray]:
        return None if self._state is None else self._state.copy()


class LandmarkSmoother:
    """Smooths all hand landmarks at once; restarts when the hand is lost."""

    def __init__(self, alpha: float) -> None:
        self._smoother = ExponentialSmoother(alpha)

    def update(self, landmarks: np.ndarray) -> np.ndarray:
        if landmarks.shape != (HAND_LANDMARKS, 3):
            raise ValueError("MediaPipe Hands should return 21 landmarks.")
        return self._smoother.update(landmarks)

    def reset(self) -> None:
        self._smoother.reset()
