from __future__ import annotations

import logging
import math

import numpy as np

from utils.config import Gesture, InputSample, MorphConfig, Phase

logger = logging.getLogger(__name__)


def lerp(a: float, b: float, k: float) -> float:
    return a + (b - a) * k


def euler_matrix(pitch: float, yaw: float, roll: float) -> np.ndarray:
    """Rotation matrix for intrinsic XYZ Euler angles (Rx @ Ry @ Rz)."""
    cx, sx = math.cos(pitch), math.sin(pitch)
    cy, sy = math.cos(yaw), math.sin(yaw)
    cz, sz = math.cos(roll), math.sin(roll)
    return np.array(
        [
            [cy * cz, -cy * sz, sy],
            [cx * sz + sx * sy * cz, cx * cz - sx * sy * sz, -sx * cy],
            [sx * sz - cx * sy * cz, sx * cz + cx * sy * sz, cx * cy],
        ],
        dtype=np.float32,
    )


class MorphState:
    """Global morph parameters, eased once per frame toward the gesture signal."""

    def __init__(self, config: MorphConfig) -> None:
        self._config = config
        self.t = 0.0
        self.cloud_center = np.zeros(3, dtype=np.float32)
        self.rotation = np.zeros(3, dtype=np.float32)  # pitch, yaw, roll
        self.phase = Phase.TREE
        self._direction = 0

    @staticmethod
    def target_expansion(sample: InputSample) -> float:
        if sample.camera_active:
            return float(np.clip(sample.openness, 0.0, 1.0))
        return 1.0 if sample.gesture == Gesture.OPEN_PALM else 0.0

    def hand_anchor(self, sample: InputSample) -> np.ndarray:
        x, y, z = sample.hand_position
        # camera image is mirrored, hence 1 - x
        return np.array(
            [(1.0 - x - 0.5) * 50.0, -(y - 0.5) * 30.0, lerp(-10.0, 15.0, z)],
            dtype=np.float32,
        )

    def advance(self, sample: InputSample) -> float:
        cfg = self._config
        previous = self.t
        target = self.target_expansion(sample)
        self.t = float(np.clip(lerp(self.t, target, cfg.expansion_ease), 0.0, 1.0))
        if self.t > previous:
            self._direction = 1
        elif self.t < previous:
            self._direction = -1

        if self.t > cfg.follow_threshold and sample.camera_active:
            self.cloud_center += (self.hand_anchor(sample) - self.cloud_center) * cfg.center_ease
        elif self.t < cfg.return_threshold:
            self.cloud_center -= self.cloud_center * cfg.center_ease

        goal = np.asarray(sample.hand_rotation, dtype=np.float32) if sample.camera_active else 0.0
        self.rotation += (goal - self.rotation) * cfg.rotation_ease

        phase = self._classify()
        if phase != self.phase:
            logger.debug("Phase %s -> %s at t=%.3f", self.phase.value, phase.value, self.t)
            self.phase = phase
        return self.t

    def _classify(self) -> Phase:
        if self.t < 0.1:
            return Phase.TREE
        if self.t > 0.9:
            return Phase.NEBULA
        if self._direction > 0:
            return Phase.BLOOMING
        if self._direction < 0:
            return Phase.COLLAPSING
        return self.phase

    def orientation(self, frame_time: float) -> np.ndarray:
        pitch, yaw, roll = (float(v) for v in self.rotation)
        return euler_matrix(pitch, yaw + frame_time * self._config.auto_rotation_speed, roll)

    def chaos_amplitude(self) -> float:
        return math.sin(self.t * math.pi) * self._config.chaos_amplitude
