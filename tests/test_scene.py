import logging

import numpy as np
import pytest

from morph.categories import CATEGORY_SPECS, TOTAL_PARTICLES, Category
from morph.drivers import InstanceBuffers
from morph.scene import TreeScene, cloud_targets, tree_targets
from utils.config import InputSample, MorphConfig

IDLE = InputSample()
# projects to world (75, 75, 2), well clear of the tree
POINTER_AWAY = InputSample(pointer=(5.0, 5.0))


def test_category_counts_add_up():
    assert sum(spec.count for spec in CATEGORY_SPECS.values()) == TOTAL_PARTICLES


def test_targets_follow_tree_form(morph_config):
    rng = np.random.default_rng(0)
    ribbon = tree_targets(CATEGORY_SPECS[Category.RIBBON], morph_config, rng)
    assert np.hypot(ribbon[0, 0], ribbon[0, 2]) == pytest.approx(6.2, rel=1e-5)
    ornament = tree_targets(CATEGORY_SPECS[Category.ORNAMENT], morph_config, rng)
    assert np.hypot(ornament[0, 0], ornament[0, 2]) == pytest.approx(6.0, rel=1e-5)
    cloud = cloud_targets(CATEGORY_SPECS[Category.RIBBON], morph_config, rng)
    assert cloud.shape == (600, 3)


def test_idle_scene_stays_on_tree(morph_config):
    scene = TreeScene(morph_config, categories=[Category.ORB])
    arena = scene.evaluator.arena(Category.ORB)
    for frame in range(200):
        t = scene.update(frame / 60.0, POINTER_AWAY)
        assert t == 0.0
    np.testing.assert_allclose(arena.current, arena.tree, atol=1e-5)
    np.testing.assert_allclose(scene.buffers[Category.ORB].positions, arena.tree, atol=1e-5)


def test_pointer_inside_tree_only_moves_nearby_orbs(morph_config):
    scene = TreeScene(morph_config, categories=[Category.ORB])
    arena = scene.evaluator.arena(Category.ORB)
    # default pointer (0, 0) lands at world (0, 0, 2)
    for frame in range(200):
        scene.update(frame / 60.0, IDLE)
    np.testing.assert_allclose(arena.current, arena.tree, atol=1e-5)

    pointer = np.array([0.0, 0.0, 2.0], dtype=np.float32)
    before = np.linalg.norm(arena.tree - pointer, axis=1)
    positions = scene.buffers[Category.ORB].positions
    after = np.linalg.norm(positions - pointer, axis=1)
    outside = before >= morph_config.repulsion_radius
    np.testing.assert_allclose(positions[outside], arena.tree[outside], atol=1e-5)
    inside = (before < morph_config.repulsion_radius - 0.1) & (before > 1e-3)
    assert inside.any()
    assert np.all(after[inside] > before[inside])


def test_open_palm_blooms_whole_scene(morph_config):
    scene = TreeScene(morph_config)
    sample = InputSample(openness=1.0, camera_active=True, hand_position=(0.5, 0.5, 0.4))
    for frame in range(120):
        scene.update(frame / 60.0, sample)
    assert scene.state.t > 0.99
    for category in Category:
        assert np.all(np.isfinite(scene.buffers[category].positions))


def test_same_seed_builds_same_scene():
    first = TreeScene(MorphConfig(seed=7), categories=[Category.GIFT])
    second = TreeScene(MorphConfig(seed=7), categories=[Category.GIFT])
    np.testing.assert_array_equal(
        first.evaluator.arena(Category.GIFT).cloud, second.evaluator.arena(Category.GIFT).cloud
    )


def test_missing_buffers_are_skipped(morph_config, caplog):
    buffers = {Category.STAR: InstanceBuffers.allocate(CATEGORY_SPECS[Category.STAR].count)}
    scene = TreeScene(morph_config, categories=[Category.STAR, Category.GIFT], buffers=buffers)
    with caplog.at_level(logging.WARNING, logger="morph.scene"):
        scene.update(0.0, IDLE)
        scene.update(1 / 60.0, IDLE)
    assert not scene.evaluator.arena(Category.GIFT).current.any()
    assert scene.evaluator.arena(Category.STAR).current.any()
    warnings = [
        record
        for record in caplog.records
        if record.levelno == logging.WARNING and "gift" in record.getMessage()
    ]
    assert len(warnings) == 1


def test_attach_validates_instance_count(morph_config):
    scene = TreeScene(morph_config, categories=[Category.CANDY], buffers={})
    with pytest.raises(ValueError):
        scene.attach(Category.CANDY, InstanceBuffers.allocate(10))
    scene.attach(Category.CANDY, InstanceBuffers.allocate(500))
    scene.update(0.0, IDLE)
    assert scene.buffers[Category.CANDY].positions.any()


def test_top_star_follows_t(morph_config):
    scene = TreeScene(morph_config, categories=[Category.STAR])
    assert scene.top_star_scale == 1.0
    assert scene.top_star_light == 3.0
    scene.state.t = 0.25
    scene.frame_time = 4.0
    assert scene.top_star_scale == pytest.approx(0.75)
    assert scene.top_star_light == pytest.approx(2.25)
    assert scene.top_star_spin == pytest.approx(2.0)
    np.testing.assert_allclose(scene.top_star_position, [0.0, 8.3, 0.0])


def test_ribbon_cloud_uses_configured_factor():
    spec = CATEGORY_SPECS[Category.RIBBON]
    full = cloud_targets(spec, MorphConfig(ribbon_cloud_factor=1.0), np.random.default_rng(3))
    half = cloud_targets(spec, MorphConfig(ribbon_cloud_factor=0.5), np.random.default_rng(3))
    np.testing.assert_allclose(half, full * 0.5, rtol=1e-5, atol=1e-5)
    # other categories ignore the ribbon factor
    gift = CATEGORY_SPECS[Category.GIFT]
    np.testing.assert_allclose(
        cloud_targets(gift, MorphConfig(ribbon_cloud_factor=0.5), np.random.default_rng(3)),
        cloud_targets(gift, MorphConfig(ribbon_cloud_factor=1.0), np.random.default_rng(3)),
    )
