from __future__ import annotations

from typing import Optional

import numpy as np


def _rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return rng if rng is not None else np.random.default_rng()


def generate_conical_fill(
    count: int,
    radius: float,
    height: float,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Random points inside a cone standing on the XZ plane, centred on y=0.

    The planar distance uses a square-root scaled draw so the areal density
    of every horizontal slice is uniform.
    """
    rng = _rng(rng)
    y = rng.random(count) * height
    local_radius = radius * (height - y) / height
    theta = rng.random(count) * 2.0 * np.pi
    dist = np.sqrt(rng.random(count)) * local_radius
    x = np.cos(theta) * dist
    z = np.sin(theta) * dist
    return np.stack([x, y - height / 2.0, z], axis=1).astype(np.float32)


def generate_gaussian_cloud(
    count: int,
    radius: float,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Box-Muller gaussian blob with standard deviation ``radius * 0.5``.

    Tails are not clipped, a few points land beyond ``radius``.
    """
    rng = _rng(rng)
    # 1 - random() lies in (0, 1], keeping log() finite
    u1 = 1.0 - rng.random(count)
    u2 = rng.random(count)
    u3 = 1.0 - rng.random(count)
    u4 = rng.random(count)
    mag = np.sqrt(-2.0 * np.log(u1))
    x = mag * np.cos(2.0 * np.pi * u2)
    y = mag * np.sin(2.0 * np.pi * u2)
    z = np.sqrt(-2.0 * np.log(u3)) * np.cos(2.0 * np.pi * u4)
    scale = radius * 0.5
    return (np.stack([x, y, z], axis=1) * scale).astype(np.float32)


def generate_spiral_curve(
    count: int,
    radius: float,
    height: float,
    turns: float,
    offset: float = 0.0,
) -> np.ndarray:
    """Ordered spiral climbing from the base to the apex.

    Consecutive indices are neighbours along the curve. ``offset`` pushes
    the whole strand outwards so it floats above the cone surface.
    """
    t = np.arange(count, dtype=np.float64) / max(1, count)
    angle = t * 2.0 * np.pi * turns
    y = (t - 0.5) * height
    r = radius * (1.0 - t) + offset
    x = np.cos(angle) * r
    z = np.sin(angle) * r
    return np.stack([x, y, z], axis=1).astype(np.float32)
