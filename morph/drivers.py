from __future__ import annotations

import colorsys
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from morph.categories import CATEGORY_SPECS, Category, CategorySpec, ColorRule, SpinRule, palette_rgb
from utils.config import MorphConfig


@dataclass
class InstanceBuffers:
    """Renderer-facing per-instance transforms and colours for one category."""

    positions: np.ndarray  # (N, 3)
    rotations: np.ndarray  # (N, 3) Euler XYZ
    scales: np.ndarray  # (N, 3)
    colors: np.ndarray  # (N, 3) linear RGB, > 1 means emissive

    @classmethod
    def allocate(cls, count: int) -> "InstanceBuffers":
        return cls(
            positions=np.zeros((count, 3), dtype=np.float32),
            rotations=np.zeros((count, 3), dtype=np.float32),
            scales=np.ones((count, 3), dtype=np.float32),
            colors=np.ones((count, 3), dtype=np.float32),
        )

    @property
    def count(self) -> int:
        return self.positions.shape[0]

    def matrices(self) -> np.ndarray:
        """Compose (N, 4, 4) row-major affine transforms: T @ R(xyz) @ S."""
        cx, cy, cz = (np.cos(self.rotations[:, i]) for i in range(3))
        sx, sy, sz = (np.sin(self.rotations[:, i]) for i in range(3))
        rot = np.empty((self.count, 3, 3), dtype=np.float32)
        rot[:, 0, 0] = cy * cz
        rot[:, 0, 1] = -cy * sz
        rot[:, 0, 2] = sy
        rot[:, 1, 0] = cx * sz + sx * sy * cz
        rot[:, 1, 1] = cx * cz - sx * sy * sz
        rot[:, 1, 2] = -sx * cy
        rot[:, 2, 0] = sx * sz - cx * sy * cz
        rot[:, 2, 1] = sx * cz + cx * sy * sz
        rot[:, 2, 2] = cx * cy
        out = np.zeros((self.count, 4, 4), dtype=np.float32)
        out[:, :3, :3] = rot * self.scales[:, None, :]
        out[:, :3, 3] = self.positions
        out[:, 3, 3] = 1.0
        return out


class CategoryDriver:
    """Applies one category's scale, spin, colour and repulsion rules."""

    def __init__(
        self,
        category: Category,
        seeds: np.ndarray,
        config: MorphConfig,
        rng: np.random.Generator,
    ) -> None:
        self.category = category
        self.spec: CategorySpec = CATEGORY_SPECS[category]
        self._config = config
        self._rng = rng
        count = self.spec.count
        self._seeds = seeds.astype(np.float32)
        self._palette = palette_rgb(self.spec.palette)
        self._speeds = (rng.random(count, dtype=np.float32) - 0.5) * 2.0
        self._wave = np.empty(count, dtype=np.float32)
        self._diff = np.empty((count, 3), dtype=np.float32)
        self._dist = np.empty(count, dtype=np.float32)
        self._push = np.empty(count, dtype=np.float32)
        self._base_colors = self._palette[np.arange(count) % len(self._palette)] * self.spec.intensity

    def update(
        self,
        buffers: InstanceBuffers,
        positions: np.ndarray,
        frame_time: float,
        t: float,
        pointer: Optional[np.ndarray] = None,
    ) -> None:
        np.copyto(buffers.positions, positions)
        if self.spec.repels and pointer is not None and t < self._config.repulsion_cutoff:
            self._repel(buffers.positions, pointer)
        self._apply_scale(buffers.scales, frame_time, t)
        self._apply_rotation(buffers.rotations, frame_time)
        self._apply_color(buffers.colors, t)

    def _repel(self, positions: np.ndarray, pointer: np.ndarray) -> None:
        radius = self._config.repulsion_radius
        diff, dist, push = self._diff, self._dist, self._push
        np.subtract(positions, pointer, out=diff)
        np.einsum("ij,ij->i", diff, diff, out=dist)
        np.sqrt(dist, out=dist)
        # push = max(radius - d, 0) / radius * strength / d
        np.subtract(radius, dist, out=push)
        np.maximum(push, 0.0, out=push)
        push *= self._config.repulsion_strength / radius
        np.maximum(dist, 1e-6, out=dist)
        push /= dist
        diff *= push[:, None]
        positions += diff

    def _apply_scale(self, scales: np.ndarray, frame_time: float, t: float) -> None:
        lo, hi = self.spec.scale_range
        base = lo + (hi - lo) * t
        wave = self._wave
        if self.spec.pulse:
            np.add(self._seeds, frame_time * 2.0, out=wave)
            np.sin(wave, out=wave)
            wave *= 0.2
            wave += 0.8
        else:
            wave.fill(1.0)
        for axis, factor in enumerate(self.spec.scale_axes):
            np.multiply(wave, base * factor, out=scales[:, axis])

    def _apply_rotation(self, rotations: np.ndarray, frame_time: float) -> None:
        if self.spec.spin is SpinRule.RANDOM:
            np.multiply(self._speeds, frame_time, out=rotations[:, 0])
            np.multiply(self._speeds, frame_time * 0.5, out=rotations[:, 1])
            rotations[:, 2] = 0.0
        elif self.spec.spin is SpinRule.FIXED:
            angle = frame_time * self.spec.spin_rate
            rotations[:, 0] = angle
            rotations[:, 1] = angle
            rotations[:, 2] = 0.0
        else:
            rotations.fill(0.0)

    def _apply_color(self, colors: np.ndarray, t: float) -> None:
        np.copyto(colors, self._base_colors)


class OrbDriver(CategoryDriver):
    """Green hue ramp that warms toward a pre-sampled star colour as t grows."""

    def __init__(
        self,
        category: Category,
        seeds: np.ndarray,
        config: MorphConfig,
        rng: np.random.Generator,
    ) -> None:
        super().__init__(category, seeds, config, rng)
        hues = 0.3 + self._seeds.astype(np.float64) * 0.0001
        self._hue_colors = np.array(
            [colorsys.hls_to_rgb(h % 1.0, 0.5, 0.8) for h in hues], dtype=np.float32
        )
        picks = rng.integers(0, len(self._palette), size=self.spec.count)
        self._star_colors = self._palette[picks] * self.spec.intensity
        self._blend = self._star_colors - self._hue_colors

    def _apply_color(self, colors: np.ndarray, t: float) -> None:
        np.multiply(self._blend, t, out=colors)
        colors += self._hue_colors


class RibbonDriver(CategoryDriver):
    """Point-light strand: twinkling scale and flickering warm colour."""

    def __init__(
        self,
        category: Category,
        seeds: np.ndarray,
        config: MorphConfig,
        rng: np.random.Generator,
    ) -> None:
        super().__init__(category, seeds, config, rng)
        count = self.spec.count
        self._local = np.arange(count, dtype=np.float32)
        self._twinkle_speeds = 3.0 + rng.random(count, dtype=np.float32) * 2.0
        self._mix = np.empty(count, dtype=np.float32)
        self._warm, self._gold = self._palette[0], self._palette[1]

    def twinkle(self, frame_time: float) -> np.ndarray:
        wave = self._wave
        np.multiply(self._twinkle_speeds, frame_time, out=wave)
        wave += self._local
        np.sin(wave, out=wave)
        wave += 1.0
        wave *= 0.5
        return wave

    def update(
        self,
        buffers: InstanceBuffers,
        positions: np.ndarray,
        frame_time: float,
        t: float,
        pointer: Optional[np.ndarray] = None,
    ) -> None:
        np.copyto(buffers.positions, positions)
        twinkle = self.twinkle(frame_time)
        lo, hi = self.spec.scale_range
        np.multiply(twinkle, hi - lo, out=buffers.scales[:, 0])
        buffers.scales[:, 0] += lo
        buffers.scales[:, 1] = buffers.scales[:, 0]
        buffers.scales[:, 2] = buffers.scales[:, 0]
        buffers.rotations.fill(0.0)

        mix = self._mix
        self._rng.random(dtype=np.float32, out=mix)
        colors = buffers.colors
        for channel in range(3):
            np.multiply(mix, self._gold[channel] - self._warm[channel], out=colors[:, channel])
            colors[:, channel] += self._warm[channel]
        # emissive boost, 1 + twinkle * 4
        twinkle *= 4.0
        twinkle += 1.0
        colors *= twinkle[:, None]


_DRIVERS = {
    ColorRule.ORB_BLEND: OrbDriver,
    ColorRule.PALETTE: CategoryDriver,
    ColorRule.TWINKLE: RibbonDriver,
}


def make_driver(
    category: Category,
    seeds: np.ndarray,
    config: MorphConfig,
    rng: np.random.Generator,
) -> CategoryDriver:
    driver_cls = _DRIVERS[CATEGORY_SPECS[category].color_rule]
    return driver_cls(category, seeds, config, rng)


def pointer_world(pointer: Tuple[float, float], config: MorphConfig) -> np.ndarray:
    """Project the NDC pointer onto the plane the repulsion works in."""
    return np.array(
        [pointer[0] * config.pointer_scale, pointer[1] * config.pointer_scale, config.pointer_depth],
        dtype=np.float32,
    )
