from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping

import numpy as np

from morph.categories import CATEGORY_SPECS, Category, CategorySpec
from morph.state import MorphState
from utils.config import MorphConfig


@dataclass
class ParticleArena:
    """Targets, persisted positions and scratch space for one category."""

    tree: np.ndarray
    cloud: np.ndarray
    seeds: np.ndarray
    inertia: np.ndarray
    chaos: np.ndarray
    current: np.ndarray = field(init=False)
    seeded: bool = field(init=False, default=False)
    scratch_anchor: np.ndarray = field(init=False, repr=False)
    scratch_step: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        count = self.tree.shape[0]
        if self.cloud.shape != (count, 3) or self.tree.shape != (count, 3):
            raise ValueError("Tree and cloud targets must both be (count, 3).")
        self.tree.setflags(write=False)
        self.cloud.setflags(write=False)
        self.current = np.zeros((count, 3), dtype=np.float32)
        self.scratch_anchor = np.empty_like(self.current)
        self.scratch_step = np.empty_like(self.current)

    @property
    def count(self) -> int:
        return self.tree.shape[0]

    @classmethod
    def build(
        cls,
        spec: CategorySpec,
        tree: np.ndarray,
        cloud: np.ndarray,
        config: MorphConfig,
    ) -> "ParticleArena":
        seeds = np.arange(spec.count, dtype=np.int64) + spec.index_offset
        if spec.fast_inertia:
            inertia = np.full(spec.count, config.fast_inertia, dtype=np.float32)
        else:
            inertia = (config.base_inertia + (seeds % config.inertia_period) * config.inertia_step).astype(np.float32)
        s = seeds.astype(np.float64)
        chaos = np.stack([np.sin(s) - 0.5, np.cos(s) - 0.5, np.sin(s * 2.0) - 0.5], axis=1).astype(np.float32)
        return cls(
            tree=np.ascontiguousarray(tree, dtype=np.float32),
            cloud=np.ascontiguousarray(cloud, dtype=np.float32),
            seeds=seeds,
            inertia=inertia[:, None],
            chaos=chaos,
        )


class MorphEvaluator:
    """Blends every particle between its tree and cloud targets with inertia."""

    def __init__(self, state: MorphState, arenas: Mapping[Category, ParticleArena]) -> None:
        self._state = state
        self._arenas: Dict[Category, ParticleArena] = dict(arenas)
        for category, arena in self._arenas.items():
            expected = CATEGORY_SPECS[category].count
            if arena.count != expected:
                raise ValueError(f"{category.value} arena holds {arena.count} particles, expected {expected}.")

    def arena(self, category: Category) -> ParticleArena:
        return self._arenas[category]

    def advance_particle(self, category: Category, local_index: int, frame_time: float) -> np.ndarray:
        arena = self._arenas[category]
        state = self._state
        t = state.t
        current = arena.current[local_index]
        tree = arena.tree[local_index]
        if not current.any():
            current[:] = tree

        anchor = state.orientation(frame_time) @ arena.cloud[local_index] + state.cloud_center
        target = tree + (anchor - tree) * t + arena.chaos[local_index] * state.chaos_amplitude()
        current += (target - current) * arena.inertia[local_index]
        return current.copy()

    def advance_category(self, category: Category, frame_time: float) -> np.ndarray:
        """Advance a whole category in place and return its current positions."""
        arena = self._arenas[category]
        state = self._state
        anchor = arena.scratch_anchor
        step = arena.scratch_step

        if not arena.seeded:
            unset = ~arena.current.any(axis=1)
            arena.current[unset] = arena.tree[unset]
            arena.seeded = True

        np.matmul(arena.cloud, state.orientation(frame_time).T, out=anchor)
        anchor += state.cloud_center
        # anchor <- lerp(tree, anchor, t)
        anchor -= arena.tree
        anchor *= state.t
        anchor += arena.tree
        amplitude = state.chaos_amplitude()
        if amplitude != 0.0:
            np.multiply(arena.chaos, amplitude, out=step)
            anchor += step

        np.subtract(anchor, arena.current, out=step)
        step *= arena.inertia
        arena.current += step
        return arena.current
