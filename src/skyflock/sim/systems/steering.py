from __future__ import annotations

import math
from typing import List

from ..core.agent import Boid
from ..core.config import FlockingConfig, PerturbationConfig
from ..core.perturbation import PerturbationSnapshot
from ..utils.math3d import _clamp_length_xyz_f, _set_length_xyz_f


def steer(
    boid: Boid,
    neighbors: List[Boid],
    perturbation: PerturbationSnapshot,
    flocking: FlockingConfig,
    perturbation_config: PerturbationConfig,
) -> int:
    """Accumulate this tick's steering forces into `boid.acceleration`.

    `neighbors` is a broad-phase candidate list; exact distances are checked here.
    Reads only `boid`, the candidates and the snapshot, so boids can steer in any
    order. Returns the number of candidates examined.
    """

    pos = boid.position
    pos_x = pos.x
    pos_y = pos.y
    pos_z = pos.z
    visual_range = flocking.visual_range
    protected_range = flocking.protected_range

    cohesion_x = cohesion_y = cohesion_z = 0.0
    alignment_x = alignment_y = alignment_z = 0.0
    separation_x = separation_y = separation_z = 0.0
    flock_count = 0
    separation_count = 0
    checks = 0

    for other in neighbors:
        if other is boid:
            continue
        checks += 1
        other_pos = other.position
        dx = pos_x - other_pos.x
        dy = pos_y - other_pos.y
        dz = pos_z - other_pos.z
        dist_sq = dx * dx + dy * dy + dz * dz
        if dist_sq <= 0.0:
            continue
        distance = math.sqrt(dist_sq)
        if distance < visual_range:
            cohesion_x += other_pos.x
            cohesion_y += other_pos.y
            cohesion_z += other_pos.z
            other_vel = other.velocity
            alignment_x += other_vel.x
            alignment_y += other_vel.y
            alignment_z += other_vel.z
            flock_count += 1
        if distance < protected_range:
            # Inverse-distance weighting: (self - other) / d^2.
            separation_x += dx / dist_sq
            separation_y += dy / dist_sq
            separation_z += dz / dist_sq
            separation_count += 1

    if flock_count > 0:
        inv = 1.0 / flock_count
        _apply_steer(
            boid,
            cohesion_x * inv - pos_x,
            cohesion_y * inv - pos_y,
            cohesion_z * inv - pos_z,
            flocking,
            flocking.cohesion_weight,
        )
        _apply_steer(
            boid,
            alignment_x * inv,
            alignment_y * inv,
            alignment_z * inv,
            flocking,
            flocking.alignment_weight,
        )
    if separation_count > 0:
        inv = 1.0 / separation_count
        _apply_steer(
            boid,
            separation_x * inv,
            separation_y * inv,
            separation_z * inv,
            flocking,
            flocking.separation_weight,
        )

    if perturbation.attraction_active:
        attraction(boid, perturbation, flocking, perturbation_config)
    if perturbation.explosion_active:
        explosion(boid, perturbation, flocking, perturbation_config)
    return checks


def attraction(
    boid: Boid,
    perturbation: PerturbationSnapshot,
    flocking: FlockingConfig,
    perturbation_config: PerturbationConfig,
) -> None:
    target_x, target_y, target_z = perturbation.attractor_position
    pos = boid.position
    dx = target_x - pos.x
    dy = target_y - pos.y
    dz = target_z - pos.z
    reach = flocking.visual_range * perturbation_config.attraction_range_factor
    if dx * dx + dy * dy + dz * dz >= reach * reach:
        return
    _apply_steer(boid, dx, dy, dz, flocking, flocking.attraction_weight)


def explosion(
    boid: Boid,
    perturbation: PerturbationSnapshot,
    flocking: FlockingConfig,
    perturbation_config: PerturbationConfig,
) -> None:
    """Radial one-shot impulse with linear falloff, not clamped by max_force."""

    center_x, center_y, center_z = perturbation.explosion_epicenter
    pos = boid.position
    dx = pos.x - center_x
    dy = pos.y - center_y
    dz = pos.z - center_z
    distance = math.sqrt(dx * dx + dy * dy + dz * dz)
    radius = perturbation_config.explosion_radius
    if distance <= 0.0 or distance >= radius:
        return
    falloff = 1.0 - distance / radius
    strength = flocking.max_force * perturbation_config.explosion_strength * falloff
    boid.apply_force(*_set_length_xyz_f(dx, dy, dz, strength))


def _apply_steer(
    boid: Boid,
    direction_x: float,
    direction_y: float,
    direction_z: float,
    flocking: FlockingConfig,
    weight: float,
) -> None:
    desired_x, desired_y, desired_z = _set_length_xyz_f(direction_x, direction_y, direction_z, flocking.max_speed)
    velocity = boid.velocity
    steer_x, steer_y, steer_z = _clamp_length_xyz_f(
        desired_x - velocity.x,
        desired_y - velocity.y,
        desired_z - velocity.z,
        flocking.max_force,
    )
    boid.apply_force(steer_x * weight, steer_y * weight, steer_z * weight)
