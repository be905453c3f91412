from __future__ import annotations

from typing import Tuple

from ..core.agent import Boid
from ..core.config import FlockingConfig
from ..utils.math3d import _clamp_speed_xyz_f, _wrap_axis


def integrate(boid: Boid, flocking: FlockingConfig, half_extents: Tuple[float, float, float]) -> None:
    velocity = boid.velocity
    acceleration = boid.acceleration
    vel_x, vel_y, vel_z = _clamp_speed_xyz_f(
        velocity.x + acceleration.x,
        velocity.y + acceleration.y,
        velocity.z + acceleration.z,
        flocking.min_speed,
        flocking.max_speed,
    )
    velocity.update(vel_x, vel_y, vel_z)
    position = boid.position
    position.update(position.x + vel_x, position.y + vel_y, position.z + vel_z)
    acceleration.update(0.0, 0.0, 0.0)
    wrap_bounds(boid, half_extents)


def wrap_bounds(boid: Boid, half_extents: Tuple[float, float, float]) -> None:
    """Toroidal wrap: leaving through one face re-enters through the opposite one."""

    half_x, half_y, half_z = half_extents
    position = boid.position
    position.update(
        _wrap_axis(position.x, half_x),
        _wrap_axis(position.y, half_y),
        _wrap_axis(position.z, half_z),
    )
