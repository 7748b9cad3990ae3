from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from hand_tracking.landmarks import HAND_CONNECTIONS
from utils.config import Gesture, HUDConfig


class HUDOverlay:
    """Draws the hand skeleton and tracking readout on the camera preview."""

    def __init__(self, config: HUDConfig) -> None:
        self._config = config
        self._font = cv2.FONT_HERSHEY_PLAIN

    def apply(
        self,
        frame_bgr: np.ndarray,
        landmarks: Optional[np.ndarray],
        gesture: Gesture,
        openness: float,
        fps: float,
    ) -> np.ndarray:
        frame = frame_bgr
        if landmarks is not None:
            self._draw_hand(frame, landmarks)
        # preview is shown mirrored, so text is drawn after flipping
        frame = cv2.flip(frame, 1)
        margin = self._config.margin
        lines = [
            f"gesture :: {gesture.value.replace('_', ' ')}",
            f"open {openness:4.2f}",
            f"fps {fps:05.2f}",
        ]
        for row, text in enumerate(lines):
            cv2.putText(
                frame,
                text,
                (margin, margin + 12 + row * 16),
                self._font,
                self._config.text_scale,
                self._config.text_color,
                1,
                cv2.LINE_AA,
            )
        return frame

    def _draw_hand(self, frame: np.ndarray, landmarks: np.ndarray) -> None:
        h, w = frame.shape[:2]
        points = [(int(lm[0] * w), int(lm[1] * h)) for lm in landmarks]
        color = self._config.bone_color
        thickness = self._config.line_thickness
        for start, end in HAND_CONNECTIONS:
            cv2.line(frame, points[start], points[end], color, thickness, cv2.LINE_AA)
        for point in points:
            cv2.circle(frame, point, thickness + 1, color, -1, cv2.LINE_AA)
