from __future__ import annotations

import math

import numpy as np

from utils.config import Phase, RenderConfig


def perspective(fov_deg: float, aspect: float, near: float, far: float) -> np.ndarray:
    f = 1.0 / math.tan(math.radians(fov_deg) / 2.0)
    proj = np.zeros((4, 4), dtype=np.float32)
    proj[0, 0] = f / aspect
    proj[1, 1] = f
    proj[2, 2] = (far + near) / (near - far)
    proj[2, 3] = 2.0 * far * near / (near - far)
    proj[3, 2] = -1.0
    return proj


def look_at(eye: np.ndarray, target: np.ndarray, up: np.ndarray) -> np.ndarray:
    forward = target - eye
    forward = forward / np.linalg.norm(forward)
    side = np.cross(forward, up)
    side = side / np.linalg.norm(side)
    true_up = np.cross(side, forward)
    view = np.identity(4, dtype=np.float32)
    view[0, :3] = side
    view[1, :3] = true_up
    view[2, :3] = -forward
    view[:3, 3] = -view[:3, :3] @ eye
    return view


class CameraRig:
    """Dollies the viewpoint out for the nebula and back in for the tree."""

    def __init__(self, config: RenderConfig) -> None:
        self._config = config
        self.eye = np.array(config.tree_eye, dtype=np.float32)
        self._goal = self.eye.copy()
        self._target = np.zeros(3, dtype=np.float32)
        self._up = np.array([0.0, 1.0, 0.0], dtype=np.float32)

    def follow(self, phase: Phase) -> None:
        # transitional phases keep heading for the last settled view
        if phase is Phase.NEBULA:
            self._goal = np.array(self._config.nebula_eye, dtype=np.float32)
        elif phase is Phase.TREE:
            self._goal = np.array(self._config.tree_eye, dtype=np.float32)
        self.eye += (self._goal - self.eye) * self._config.camera_ease

    def view(self) -> np.ndarray:
        return look_at(self.eye, self._target, self._up)

    def view_projection(self, aspect: float) -> np.ndarray:
        cfg = self._config
        return perspective(cfg.camera_fov, aspect, cfg.near_plane, cfg.far_plane) @ self.view()
