from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional, Set

import numpy as np

from morph import generators
from morph.categories import CATEGORY_SPECS, Category, CategorySpec, TreeForm
from morph.drivers import CategoryDriver, InstanceBuffers, make_driver, pointer_world
from morph.evaluator import MorphEvaluator, ParticleArena
from morph.state import MorphState
from utils.config import InputSample, MorphConfig

logger = logging.getLogger(__name__)

TOP_STAR_LIGHT = 3.0
TOP_STAR_SPIN = 0.5


def tree_targets(spec: CategorySpec, config: MorphConfig, rng: np.random.Generator) -> np.ndarray:
    if spec.tree_form is TreeForm.CONE:
        return generators.generate_conical_fill(spec.count, config.tree_radius, config.tree_height, rng)
    if spec.tree_form is TreeForm.ORNAMENT_SPIRAL:
        return generators.generate_spiral_curve(
            spec.count, config.tree_radius, config.tree_height, config.ornament_turns
        )
    return generators.generate_spiral_curve(
        spec.count,
        config.tree_radius,
        config.tree_height,
        config.ribbon_turns,
        offset=config.ribbon_offset,
    )


def cloud_targets(spec: CategorySpec, config: MorphConfig, rng: np.random.Generator) -> np.ndarray:
    factor = config.ribbon_cloud_factor if spec.tight_cloud else 1.0
    return generators.generate_gaussian_cloud(spec.count, config.nebula_radius * factor, rng)


class TreeScene:
    """Everything the renderer needs each frame, updated by a single call."""

    def __init__(
        self,
        config: MorphConfig,
        categories: Optional[Iterable[Category]] = None,
        buffers: Optional[Mapping[Category, InstanceBuffers]] = None,
    ) -> None:
        self._config = config
        self._rng = np.random.default_rng(config.seed)
        self.categories = list(categories) if categories is not None else list(Category)
        self.state = MorphState(config)

        arenas: Dict[Category, ParticleArena] = {}
        self.drivers: Dict[Category, CategoryDriver] = {}
        for category in self.categories:
            spec = CATEGORY_SPECS[category]
            arena = ParticleArena.build(
                spec,
                tree_targets(spec, config, self._rng),
                cloud_targets(spec, config, self._rng),
                config,
            )
            arenas[category] = arena
            self.drivers[category] = make_driver(category, arena.seeds, config, self._rng)
        self.evaluator = MorphEvaluator(self.state, arenas)

        if buffers is None:
            self.buffers: Dict[Category, InstanceBuffers] = {
                category: InstanceBuffers.allocate(CATEGORY_SPECS[category].count)
                for category in self.categories
            }
        else:
            self.buffers = dict(buffers)
        self._missing_reported: Set[Category] = set()
        self.frame_time = 0.0
        logger.info(
            "Scene built: %s",
            ", ".join(f"{c.value}={CATEGORY_SPECS[c].count}" for c in self.categories),
        )

    def attach(self, category: Category, buffers: InstanceBuffers) -> None:
        if buffers.count != CATEGORY_SPECS[category].count:
            raise ValueError(f"{category.value} buffers must hold {CATEGORY_SPECS[category].count} instances.")
        self.buffers[category] = buffers
        self._missing_reported.discard(category)

    def update(self, frame_time: float, sample: InputSample) -> float:
        """Advance the morph state, then every category with attached buffers."""
        self.frame_time = frame_time
        t = self.state.advance(sample)
        pointer = pointer_world(sample.pointer, self._config)
        for category in self.categories:
            buffers = self.buffers.get(category)
            if buffers is None:
                if category not in self._missing_reported:
                    logger.warning("No buffers attached for %s, skipping", category.value)
                    self._missing_reported.add(category)
                continue
            positions = self.evaluator.advance_category(category, frame_time)
            self.drivers[category].update(buffers, positions, frame_time, t, pointer)
        return t

    @property
    def top_star_scale(self) -> float:
        return 1.0 - self.state.t

    @property
    def top_star_light(self) -> float:
        return TOP_STAR_LIGHT * (1.0 - self.state.t)

    @property
    def top_star_spin(self) -> float:
        return self.frame_time * TOP_STAR_SPIN

    @property
    def top_star_position(self) -> np.ndarray:
        return np.array([0.0, self._config.tree_height / 2.0 + 0.8, 0.0], dtype=np.float32)
