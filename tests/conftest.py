from __future__ import annotations

from typing import Sequence

import numpy as np
import pytest

from utils.config import MorphConfig


def make_hand(extended: Sequence[bool], depth: Sequence[float] = ()) -> np.ndarray:
    """Synthetic 21-point hand, fingers pointing up the image, wrist at the bottom.

    ``extended`` holds five flags (thumb first). ``depth`` optionally sets
    the z of individual landmarks as ``(index, z)`` pairs.
    """
    points = np.zeros((21, 3), dtype=np.float32)
    points[0] = (0.5, 0.9, 0.0)
    for finger, is_extended in enumerate(extended):
        x = 0.35 + 0.075 * finger
        base = 1 + 4 * finger
        points[base] = (x, 0.7, 0.0)
        points[base + 1] = (x, 0.6, 0.0)
        points[base + 2] = (x, 0.55, 0.0)
        points[base + 3] = (x, 0.45 if is_extended else 0.78, 0.0)
    for index, z in depth:
        points[index, 2] = z
    return points


@pytest.fixture
def open_hand() -> np.ndarray:
    return make_hand([True] * 5)


@pytest.fixture
def fist() -> np.ndarray:
    return make_hand([False] * 5)


@pytest.fixture
def pointing_hand() -> np.ndarray:
    return make_hand([False, True, False, False, False])


@pytest.fixture
def morph_config() -> MorphConfig:
    return MorphConfig(seed=1234)


@pytest.fixture
def hand_factory():
    return make_hand
