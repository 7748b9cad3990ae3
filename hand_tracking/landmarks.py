from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

WRIST = 0
INDEX_MCP = 5
MIDDLE_MCP = 9
MIDDLE_TIP = 12
PINKY_MCP = 17
FINGER_TIPS = [4, 8, 12, 16, 20]
FINGER_PIPS = [3, 6, 10, 14, 18]

HAND_CONNECTIONS = [
    (0, 1), (1, 2), (2, 3), (3, 4),
    (0, 5), (5, 6), (6, 7), (7, 8),
    (0, 9), (9, 10), (10, 11), (11, 12),
    (0, 13), (13, 14), (14, 15), (15, 16),
    (0, 17), (17, 18), (18, 19), (19, 20),
]

_MIN_HAND_SCALE = 1e-4


@dataclass(frozen=True)
class HandMetrics:
    position: Tuple[float, float, float]  # x, y in image space, z depth proxy, all [0, 1]
    openness: float
    rotation: Tuple[float, float, float]  # pitch, yaw, roll


def _finite(value: float, fallback: float = 0.0) -> float:
    return float(value) if math.isfinite(value) else fallback


def _planar(a: np.ndarray, b: np.ndarray) -> float:
    return float(math.hypot(float(a[0] - b[0]), float(a[1] - b[1])))


def palm_position(landmarks: np.ndarray) -> Tuple[float, float, float]:
    wrist, index_mcp, pinky_mcp = landmarks[WRIST], landmarks[INDEX_MCP], landmarks[PINKY_MCP]
    x = (wrist[0] + index_mcp[0] + pinky_mcp[0]) / 3.0
    y = (wrist[1] + index_mcp[1] + pinky_mcp[1]) / 3.0
    # a larger hand on screen is closer to the camera
    size = _planar(landmarks[MIDDLE_TIP], wrist)
    z = np.clip((size - 0.1) / 0.4, 0.0, 1.0)
    return (
        float(np.clip(_finite(x, 0.5), 0.0, 1.0)),
        float(np.clip(_finite(y, 0.5), 0.0, 1.0)),
        _finite(float(z)),
    )


def openness(landmarks: np.ndarray) -> float:
    """0 for a closed fist, 1 for a fully spread palm."""
    wrist = landmarks[WRIST]
    hand_scale = _planar(landmarks[MIDDLE_MCP], wrist)
    if hand_scale < _MIN_HAND_SCALE:
        return 0.0
    tip_dist = sum(_planar(landmarks[idx], wrist) for idx in FINGER_TIPS) / len(FINGER_TIPS)
    ratio = tip_dist / hand_scale
    return _finite(float(np.clip((ratio - 1.0) / 1.2, 0.0, 1.0)))


def hand_rotation(landmarks: np.ndarray) -> Tuple[float, float, float]:
    wrist, index_mcp = landmarks[WRIST], landmarks[INDEX_MCP]
    middle_mcp, pinky_mcp = landmarks[MIDDLE_MCP], landmarks[PINKY_MCP]
    roll = math.atan2(float(pinky_mcp[1] - index_mcp[1]), float(pinky_mcp[0] - index_mcp[0]))
    yaw = float(pinky_mcp[2] - index_mcp[2]) * 3.0
    pitch = float(middle_mcp[2] - wrist[2]) * 3.0
    return _finite(pitch), _finite(yaw), _finite(-roll)


def finger_extended(landmarks: np.ndarray, finger_index: int) -> bool:
    wrist = landmarks[WRIST]
    tip = landmarks[FINGER_TIPS[finger_index]]
    pip = landmarks[FINGER_PIPS[finger_index]]
    return _planar(tip, wrist) > _planar(pip, wrist)


def measure(landmarks: np.ndarray) -> HandMetrics:
    return HandMetrics(
        position=palm_position(landmarks),
        openness=openness(landmarks),
        rotation=hand_rotation(landmarks),
    )
