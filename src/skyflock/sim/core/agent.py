from __future__ import annotations

from dataclasses import dataclass, field

from pygame.math import Vector3


@dataclass(slots=True)
class Boid:
    id: int
    position: Vector3
    velocity: Vector3
    acceleration: Vector3 = field(default_factory=Vector3)

    def apply_force(self, x: float, y: float, z: float) -> None:
        acceleration = self.acceleration
        acceleration.update(acceleration.x + x, acceleration.y + y, acceleration.z + z)
