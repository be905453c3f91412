from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    neighbor_checks: int
    average_speed: float
    occupied_cells: int
    attraction_active: bool
    explosion_fired: bool
    tick_duration_ms: float = 0.0
