from __future__ import annotations

import math
from typing import List

from ..core.agent import Boid
from ..types.metrics import TickMetrics


def average_speed(boids: List[Boid]) -> float:
    if not boids:
        return 0.0
    total = 0.0
    for boid in boids:
        velocity = boid.velocity
        total += math.sqrt(velocity.x * velocity.x + velocity.y * velocity.y + velocity.z * velocity.z)
    return total / len(boids)


def create_metrics(
    tick: int,
    boids: List[Boid],
    neighbor_checks: int,
    occupied_cells: int,
    attraction_active: bool,
    explosion_fired: bool,
    duration_ms: float,
) -> TickMetrics:
    return TickMetrics(
        tick=tick,
        population=len(boids),
        neighbor_checks=neighbor_checks,
        average_speed=average_speed(boids),
        occupied_cells=occupied_cells,
        attraction_active=attraction_active,
        explosion_fired=explosion_fired,
        tick_duration_ms=duration_ms,
    )
