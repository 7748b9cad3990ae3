import numpy as np
import pytest

from morph.categories import CATEGORY_SPECS, Category
from morph.evaluator import MorphEvaluator, ParticleArena
from morph.generators import generate_gaussian_cloud, generate_spiral_curve
from morph.state import MorphState
from utils.config import InputSample, MorphConfig


def _arena(category: Category, config: MorphConfig, seed: int = 0) -> ParticleArena:
    spec = CATEGORY_SPECS[category]
    rng = np.random.default_rng(seed)
    tree = generate_spiral_curve(spec.count, 6.0, 15.0, 6.0)
    cloud = generate_gaussian_cloud(spec.count, 30.0, rng)
    return ParticleArena.build(spec, tree, cloud, config)


def _evaluator(category=Category.ORNAMENT, config=None, seed=0):
    config = config or MorphConfig()
    state = MorphState(config)
    return state, MorphEvaluator(state, {category: _arena(category, config, seed)})


def test_arena_shapes_and_read_only_targets():
    _, evaluator = _evaluator()
    arena = evaluator.arena(Category.ORNAMENT)
    assert arena.current.size == CATEGORY_SPECS[Category.ORNAMENT].count * 3
    assert not arena.current.any()
    with pytest.raises(ValueError):
        arena.tree[0, 0] = 1.0
    with pytest.raises(ValueError):
        arena.cloud[0, 0] = 1.0


def test_arena_rejects_mismatched_targets():
    spec = CATEGORY_SPECS[Category.ORNAMENT]
    with pytest.raises(ValueError):
        ParticleArena.build(spec, np.zeros((spec.count, 3)), np.zeros((spec.count - 1, 3)), MorphConfig())


def test_evaluator_rejects_wrong_particle_count():
    config = MorphConfig()
    arena = _arena(Category.ORNAMENT, config)
    with pytest.raises(ValueError):
        MorphEvaluator(MorphState(config), {Category.RIBBON: arena})


def test_inertia_rules():
    config = MorphConfig()
    ribbon = _arena(Category.RIBBON, config)
    np.testing.assert_allclose(ribbon.inertia, 0.08)
    ornament = _arena(Category.ORNAMENT, config)
    # ornament seeds start at 5000, 5000 % 50 == 0
    assert ornament.inertia[0, 0] == pytest.approx(0.03)
    assert ornament.inertia[7, 0] == pytest.approx(0.037)
    assert ornament.inertia[50, 0] == pytest.approx(0.03)


def test_first_touch_seeds_tree_position():
    state, evaluator = _evaluator()
    arena = evaluator.arena(Category.ORNAMENT)
    position = evaluator.advance_particle(Category.ORNAMENT, 3, frame_time=0.0)
    np.testing.assert_allclose(position, arena.tree[3], atol=1e-6)
    positions = evaluator.advance_category(Category.ORNAMENT, frame_time=0.0)
    np.testing.assert_allclose(positions, arena.tree, atol=1e-6)


def test_particle_and_category_paths_agree():
    config = MorphConfig()
    state_a, single = _evaluator(config=config, seed=5)
    state_b, bulk = _evaluator(config=config, seed=5)
    sample = InputSample(openness=0.8, hand_position=(0.3, 0.4, 0.6), hand_rotation=(0.2, 0.1, -0.3), camera_active=True)
    count = CATEGORY_SPECS[Category.ORNAMENT].count
    for frame in range(40):
        frame_time = frame / 60.0
        state_a.advance(sample)
        state_b.advance(sample)
        expected = np.stack(
            [single.advance_particle(Category.ORNAMENT, i, frame_time) for i in range(count)]
        )
        actual = bulk.advance_category(Category.ORNAMENT, frame_time)
        np.testing.assert_allclose(actual, expected, atol=1e-4)


def test_returned_particle_position_is_a_copy():
    _, evaluator = _evaluator()
    position = evaluator.advance_particle(Category.ORNAMENT, 0, 0.0)
    position += 100.0
    assert not np.allclose(evaluator.arena(Category.ORNAMENT).current[0], position)


def test_converges_to_tree_when_closed():
    state, evaluator = _evaluator()
    arena = evaluator.arena(Category.ORNAMENT)
    arena.current[:] = arena.tree + 3.0
    arena.seeded = True
    for frame in range(800):
        state.advance(InputSample())
        evaluator.advance_category(Category.ORNAMENT, frame / 60.0)
    np.testing.assert_allclose(arena.current, arena.tree, atol=1e-3)


def test_converges_to_rotated_offset_cloud_when_open():
    state, evaluator = _evaluator()
    arena = evaluator.arena(Category.ORNAMENT)
    state.t = 1.0
    state.rotation[:] = (0.3, 0.2, -0.1)
    state.cloud_center[:] = (4.0, -2.0, 1.0)
    for _ in range(800):
        evaluator.advance_category(Category.ORNAMENT, frame_time=0.0)
    expected = arena.cloud @ state.orientation(0.0).T + state.cloud_center
    np.testing.assert_allclose(arena.current, expected, atol=1e-2)


def test_chaos_excursion_peaks_mid_transition():
    state, evaluator = _evaluator()
    arena = evaluator.arena(Category.ORNAMENT)
    state.t = 0.5
    arena.current[:] = arena.tree
    arena.seeded = True
    evaluator.advance_category(Category.ORNAMENT, 0.0)
    anchor = arena.cloud @ state.orientation(0.0).T
    blended = arena.tree + (anchor - arena.tree) * 0.5
    target = blended + arena.chaos * 5.0
    expected = arena.tree + (target - arena.tree) * arena.inertia
    np.testing.assert_allclose(arena.current, expected, atol=1e-4)


def test_positions_stay_finite_under_noisy_input():
    state, evaluator = _evaluator()
    rng = np.random.default_rng(9)
    for frame in range(300):
        sample = InputSample(
            openness=float(rng.random()),
            hand_position=tuple(rng.random(3)),
            hand_rotation=tuple(rng.normal(size=3)),
            camera_active=bool(frame % 7),
        )
        state.advance(sample)
        positions = evaluator.advance_category(Category.ORNAMENT, frame / 60.0)
        assert np.all(np.isfinite(positions))
