from __future__ import annotations

from pygame.math import Vector3
from pytest import approx

from skyflock.sim.core.agent import Boid
from skyflock.sim.core.config import FlockingConfig, PerturbationConfig
from skyflock.sim.core.perturbation import PerturbationSnapshot
from skyflock.sim.systems import steering

QUIET = PerturbationSnapshot()


def _boid(idx: int, position, velocity=(0.0, 0.0, 0.0)) -> Boid:
    return Boid(id=idx, position=Vector3(position), velocity=Vector3(velocity))


def _steer(boid: Boid, neighbors, perturbation=QUIET, flocking=None, perturbation_config=None) -> int:
    return steering.steer(
        boid,
        neighbors,
        perturbation,
        flocking or FlockingConfig(),
        perturbation_config or PerturbationConfig(),
    )


def test_no_neighbors_and_no_perturbation_leaves_acceleration_zero():
    boid = _boid(0, (0.0, 0.0, 0.0), (1.0, 0.0, 0.0))

    checks = _steer(boid, [boid])

    assert checks == 0
    assert boid.acceleration == Vector3()


def test_candidates_outside_visual_range_contribute_nothing():
    boid = _boid(0, (0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
    far = _boid(1, (60.0, 0.0, 0.0), (0.0, 1.0, 0.0))

    checks = _steer(boid, [boid, far])

    assert checks == 1
    assert boid.acceleration == Vector3()


def test_separation_and_cohesion_for_close_pair():
    first = _boid(0, (0.0, 0.0, 0.0))
    second = _boid(1, (5.0, 0.0, 0.0))

    _steer(first, [first, second])
    _steer(second, [first, second])

    # cohesion +0.1 * 0.2, separation -0.1 * 1.5, alignment zero (neighbor is still).
    assert first.acceleration.x == approx(-0.13)
    assert first.acceleration.y == approx(0.0)
    assert first.acceleration.z == approx(0.0)
    assert second.acceleration.x == approx(0.13)


def test_alignment_steers_toward_neighbor_heading():
    boid = _boid(0, (0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
    neighbor = _boid(1, (0.0, 0.0, 30.0), (0.0, 1.0, 0.0))
    flocking = FlockingConfig(cohesion_weight=0.0, separation_weight=0.0, alignment_weight=1.0, max_force=10.0)

    _steer(boid, [neighbor], flocking=flocking)

    # desired (0, 2, 0) minus velocity (1, 0, 0)
    assert boid.acceleration.x == approx(-1.0)
    assert boid.acceleration.y == approx(2.0)
    assert boid.acceleration.z == approx(0.0)


def test_steering_force_is_clamped_to_max_force_before_weighting():
    boid = _boid(0, (0.0, 0.0, 0.0))
    neighbor = _boid(1, (0.0, 20.0, 0.0))
    flocking = FlockingConfig(cohesion_weight=3.0, alignment_weight=0.0, separation_weight=0.0, max_force=0.1)

    _steer(boid, [neighbor], flocking=flocking)

    assert boid.acceleration.length() == approx(0.3)


def test_coincident_neighbors_are_ignored():
    boid = _boid(0, (3.0, 3.0, 3.0), (1.0, 0.0, 0.0))
    twin = _boid(1, (3.0, 3.0, 3.0), (0.0, 1.0, 0.0))

    _steer(boid, [twin])

    assert boid.acceleration == Vector3()


def test_attraction_pulls_toward_attractor_within_range():
    boid = _boid(0, (0.0, 0.0, 0.0))
    perturbation = PerturbationSnapshot(attractor_position=(50.0, 0.0, 0.0), attraction_active=True)

    _steer(boid, [boid], perturbation=perturbation)

    assert boid.acceleration.x == approx(0.1 * 0.8)
    assert boid.acceleration.y == approx(0.0)


def test_attraction_ignored_beyond_range_or_when_inactive():
    out_of_reach = _boid(0, (0.0, 0.0, 0.0))
    _steer(
        out_of_reach,
        [],
        perturbation=PerturbationSnapshot(attractor_position=(100.0, 0.0, 0.0), attraction_active=True),
    )
    inactive = _boid(1, (0.0, 0.0, 0.0))
    _steer(
        inactive,
        [],
        perturbation=PerturbationSnapshot(attractor_position=(50.0, 0.0, 0.0), attraction_active=False),
    )

    assert out_of_reach.acceleration == Vector3()
    assert inactive.acceleration == Vector3()


def test_explosion_impulse_uses_linear_falloff_without_clamp():
    boid = _boid(0, (10.0, 0.0, 0.0))
    perturbation = PerturbationSnapshot(explosion_active=True, explosion_epicenter=(0.0, 0.0, 0.0))

    _steer(boid, [boid], perturbation=perturbation)

    # max_force * strength * (1 - 10 / 200)
    assert boid.acceleration.x == approx(0.1 * 1000.0 * 0.95)
    assert boid.acceleration.y == approx(0.0)


def test_explosion_ignored_outside_radius_and_at_epicenter():
    config = PerturbationConfig(explosion_radius=150.0)
    outside = _boid(0, (0.0, 160.0, 0.0))
    at_center = _boid(1, (5.0, 5.0, 5.0))

    _steer(
        outside,
        [],
        perturbation=PerturbationSnapshot(explosion_active=True, explosion_epicenter=(0.0, 0.0, 0.0)),
        perturbation_config=config,
    )
    _steer(
        at_center,
        [],
        perturbation=PerturbationSnapshot(explosion_active=True, explosion_epicenter=(5.0, 5.0, 5.0)),
        perturbation_config=config,
    )

    assert outside.acceleration == Vector3()
    assert at_center.acceleration == Vector3()


def test_steer_does_not_mutate_neighbors():
    boid = _boid(0, (0.0, 0.0, 0.0), (1.0, 0.0, 0.0))
    neighbor = _boid(1, (4.0, 0.0, 0.0), (0.0, 1.0, 0.0))

    _steer(boid, [boid, neighbor])

    assert neighbor.position == Vector3(4.0, 0.0, 0.0)
    assert neighbor.velocity == Vector3(0.0, 1.0, 0.0)
    assert neighbor.acceleration == Vector3()
