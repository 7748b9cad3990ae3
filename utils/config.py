from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

Vec3 = Tuple[float, float, float]


class Gesture(str, Enum):
    NONE = "None"
    OPEN_PALM = "Open_Palm"
    CLOSED_FIST = "Closed_Fist"
    POINTING_UP = "Pointing_Up"


class Phase(str, Enum):
    TREE = "tree"
    BLOOMING = "blooming"
    NEBULA = "nebula"
    COLLAPSING = "collapsing"


@dataclass(frozen=True)
class VisionConfig:
    width: int = 320
    height: int = 240
    camera_index: int = 0
    camera_fps: int = 30
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    smoothing_alpha: float = 0.5
    detection_interval: float = 1 / 60.0


@dataclass(frozen=True)
class GestureConfig:
    stability_frames: int = 3
    cooldown_frames: int = 0
    open_threshold: float = 0.8
    closed_threshold: float = 0.2


@dataclass(frozen=True)
class MorphConfig:
    tree_height: float = 15.0
    tree_radius: float = 6.0
    nebula_radius: float = 30.0
    ribbon_cloud_factor: float = 0.8
    ornament_turns: float = 6.0
    ribbon_turns: float = 8.0
    ribbon_offset: float = 0.2
    expansion_ease: float = 0.05
    center_ease: float = 0.05
    rotation_ease: float = 0.1
    follow_threshold: float = 0.2  # cloud follows the hand above this t
    return_threshold: float = 0.1  # cloud drifts home below this t
    chaos_amplitude: float = 5.0
    auto_rotation_speed: float = 0.05
    fast_inertia: float = 0.08
    base_inertia: float = 0.03
    inertia_step: float = 0.001
    inertia_period: int = 50
    repulsion_radius: float = 5.0
    repulsion_strength: float = 2.0
    repulsion_cutoff: float = 0.2
    pointer_scale: float = 15.0
    pointer_depth: float = 2.0
    seed: Optional[int] = None


@dataclass(frozen=True)
class RenderConfig:
    window_width: int = 1280
    window_height: int = 720
    camera_fov: float = 50.0
    near_plane: float = 0.1
    far_plane: float = 200.0
    tree_eye: Vec3 = (0.0, 5.0, 25.0)
    nebula_eye: Vec3 = (0.0, 0.0, 50.0)
    camera_ease: float = 0.02
    point_size: float = 120.0  # pixels per world unit of scale at distance 1
    background: Vec3 = (0.02, 0.008, 0.0)
    preview_fraction: float = 0.22

    @property
    def aspect(self) -> float:
        return self.window_width / max(1, self.window_height)


@dataclass(frozen=True)
class HUDConfig:
    text_color: Tuple[int, int, int] = (255, 255, 255)
    bone_color: Tuple[int, int, int] = (0, 255, 0)
    text_scale: float = 1.0
    line_thickness: int = 2
    margin: int = 12


@dataclass(frozen=True)
class InputSample:
    """One read of the gesture signal, taken at the start of a frame."""

    openness: float = 0.0
    hand_position: Vec3 = (0.5, 0.5, 0.2)
    hand_rotation: Vec3 = (0.0, 0.0, 0.0)
    gesture: Gesture = Gesture.NONE
    camera_active: bool = False
    pointer: Tuple[float, float] = (0.0, 0.0)


class SharedState:
    """Last-value-wins bridge between the hand tracker, the renderer and the UI."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._phase = Phase.TREE
        self._gesture = Gesture.NONE
        self._camera_active = False
        self._hand_position: Vec3 = (0.5, 0.5, 0.2)
        self._hand_rotation: Vec3 = (0.0, 0.0, 0.0)
        self._hand_openness = 0.0
        self._pointer: Tuple[float, float] = (0.0, 0.0)
        self._preview: Optional[np.ndarray] = None
        self._shutdown: bool = False

    @property
    def phase(self) -> Phase:
        with self._lock:
            return self._phase

    def set_phase(self, phase: Phase) -> None:
        with self._lock:
            self._phase = phase

    @property
    def gesture(self) -> Gesture:
        with self._lock:
            return self._gesture

    def set_gesture(self, gesture: Gesture) -> None:
        with self._lock:
            self._gesture = gesture

    @property
    def camera_active(self) -> bool:
        with self._lock:
            return self._camera_active

    def set_camera_active(self, active: bool) -> None:
        with self._lock:
            self._camera_active = bool(active)

    @property
    def hand_position(self) -> Vec3:
        with self._lock:
            return self._hand_position

    def set_hand_position(self, position: Vec3) -> None:
        with self._lock:
            self._hand_position = (float(position[0]), float(position[1]), float(position[2]))

    @property
    def hand_rotation(self) -> Vec3:
        with self._lock:
            return self._hand_rotation

    def set_hand_rotation(self, rotation: Vec3) -> None:
        with self._lock:
            self._hand_rotation = (float(rotation[0]), float(rotation[1]), float(rotation[2]))

    @property
    def hand_openness(self) -> float:
        with self._lock:
            return self._hand_openness

    def set_hand_openness(self, openness: float) -> None:
        with self._lock:
            self._hand_openness = float(np.clip(openness, 0.0, 1.0))

    @property
    def pointer(self) -> Tuple[float, float]:
        with self._lock:
            return self._pointer

    def set_pointer(self, x: float, y: float) -> None:
        with self._lock:
            self._pointer = (float(x), float(y))

    def publish_preview(self, frame_rgb: np.ndarray) -> None:
        frame_copy = np.ascontiguousarray(frame_rgb)
        with self._lock:
            self._preview = frame_copy

    def consume_preview(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._preview is None:
                return None
            return self._preview.copy()

    def reset_hand(self) -> None:
        """Drop every gesture-derived signal back to its neutral value."""
        with self._lock:
            self._camera_active = False
            self._gesture = Gesture.NONE
            self._hand_openness = 0.0
            self._hand_rotation = (0.0, 0.0, 0.0)
            self._preview = None

    def sample(self) -> InputSample:
        with self._lock:
            return InputSample(
                openness=self._hand_openness,
                hand_position=self._hand_position,
                hand_rotation=self._hand_rotation,
                gesture=self._gesture,
                camera_active=self._camera_active,
                pointer=self._pointer,
            )

    def request_shutdown(self) -> None:
        with self._lock:
            self._shutdown = True

    def shutdown_requested(self) -> bool:
        with self._lock:
            return self._shutdown


def project_path(*parts: str) -> Path:
    """Resolve a path relative to the repository root."""
    base = Path(__file__).resolve().parents[1]
    return base.joinpath(*parts)
