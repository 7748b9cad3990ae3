from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Sequence, Tuple

import numpy as np


class Category(str, Enum):
    ORB = "orb"
    STAR = "star"
    GIFT = "gift"
    CANDY = "candy"
    ORNAMENT = "ornament"
    RIBBON = "ribbon"


class TreeForm(str, Enum):
    CONE = "cone"
    ORNAMENT_SPIRAL = "ornament_spiral"
    RIBBON_SPIRAL = "ribbon_spiral"


class SpinRule(str, Enum):
    RANDOM = "random"  # per-particle signed speed, sampled once
    FIXED = "fixed"  # same rate for every particle
    NONE = "none"


class ColorRule(str, Enum):
    ORB_BLEND = "orb_blend"  # hue ramp blending toward the star palette
    PALETTE = "palette"  # fixed palette cycled by index
    TWINKLE = "twinkle"  # warm hues flickering every frame


STAR_PALETTE = ("#FFD700", "#FFD700", "#FFAA00", "#FFF8DC", "#E0E0E0", "#FFFFFF")
ORNAMENT_COLORS = ("#C5A059", "#800020", "#778899", "#FFC0CB", "#F7E7CE", "#FF0000", "#FFFFFF")
GIFT_COLORS = ("#D4AF37", "#8B0000", "#006400", "#191970")
CANDY_COLORS = ("#FF0000", "#FFFFFF", "#FF69B4")
RIBBON_COLORS = ("#FFBF00", "#FFD700")


@dataclass(frozen=True)
class CategorySpec:
    count: int
    index_offset: int
    tree_form: TreeForm
    scale_range: Tuple[float, float]
    tight_cloud: bool = False  # nebula shrunk by MorphConfig.ribbon_cloud_factor
    scale_axes: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    pulse: bool = True
    spin: SpinRule = SpinRule.RANDOM
    spin_rate: float = 0.0
    color_rule: ColorRule = ColorRule.PALETTE
    palette: Sequence[str] = ("#FFFFFF",)
    intensity: float = 1.0
    repels: bool = False
    fast_inertia: bool = False


CATEGORY_SPECS: Dict[Category, CategorySpec] = {
    Category.ORB: CategorySpec(
        count=4000,
        index_offset=0,
        tree_form=TreeForm.CONE,
        scale_range=(0.1, 0.15),
        color_rule=ColorRule.ORB_BLEND,
        palette=STAR_PALETTE,
        intensity=1.5,
        repels=True,
    ),
    Category.STAR: CategorySpec(
        count=1500,
        index_offset=4000,
        tree_form=TreeForm.CONE,
        scale_range=(0.15, 0.25),
        palette=("#FFFFFF",),
        intensity=3.0,
    ),
    Category.GIFT: CategorySpec(
        count=500,
        index_offset=5500,
        tree_form=TreeForm.CONE,
        scale_range=(0.2, 0.4),
        palette=GIFT_COLORS,
    ),
    Category.CANDY: CategorySpec(
        count=500,
        index_offset=6000,
        tree_form=TreeForm.CONE,
        scale_range=(0.15, 0.35),
        scale_axes=(0.5, 3.0, 0.5),
        palette=CANDY_COLORS,
    ),
    Category.ORNAMENT: CategorySpec(
        count=120,
        index_offset=5000,
        tree_form=TreeForm.ORNAMENT_SPIRAL,
        scale_range=(0.4, 0.6),
        pulse=False,
        spin=SpinRule.FIXED,
        spin_rate=0.5,
        palette=ORNAMENT_COLORS,
        repels=True,
    ),
    Category.RIBBON: CategorySpec(
        count=600,
        index_offset=10000,
        tree_form=TreeForm.RIBBON_SPIRAL,
        tight_cloud=True,
        scale_range=(0.1, 0.2),
        pulse=False,
        spin=SpinRule.NONE,
        color_rule=ColorRule.TWINKLE,
        palette=RIBBON_COLORS,
        fast_inertia=True,
    ),
}

TOTAL_PARTICLES = 7220


def hex_to_rgb(value: str) -> np.ndarray:
    value = value.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Expected a #RRGGBB colour, got '{value}'.")
    return np.array([int(value[i : i + 2], 16) / 255.0 for i in (0, 2, 4)], dtype=np.float32)


def palette_rgb(palette: Sequence[str]) -> np.ndarray:
    return np.stack([hex_to_rgb(entry) for entry in palette], axis=0)
