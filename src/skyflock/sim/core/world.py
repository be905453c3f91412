from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from time import perf_counter
from typing import Any, Dict, List, Optional

from pygame.math import Vector3

from .agent import Boid
from .config import SimulationConfig, merge_config, validate_config
from .perturbation import PerturbationState
from .rng import DeterministicRng
from .spatial_grid import SpatialGrid
from ..systems import integration, metrics as metrics_system, steering
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotAttractor, SnapshotMetadata, SnapshotWorld

logger = logging.getLogger(__name__)


class SimulationState(str, Enum):
    RUNNING = "Running"
    PAUSED = "Paused"


class World:
    def __init__(self, config: SimulationConfig, perturbation: Optional[PerturbationState] = None):
        validate_config(config)
        self._config = config
        self._perturbation = perturbation if perturbation is not None else PerturbationState()
        self._rng = DeterministicRng(config.seed)
        self._grid = SpatialGrid(config.flocking.visual_range, config.bounds)
        self._agents: List[Boid] = []
        self._state = SimulationState.RUNNING
        self._metrics: TickMetrics | None = None
        self._bootstrap_population()
        logger.info("World created with %d boids (seed=%d)", len(self._agents), config.seed)

    @property
    def agents(self) -> List[Boid]:
        return self._agents

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def perturbation(self) -> PerturbationState:
        return self._perturbation

    @property
    def grid(self) -> SpatialGrid:
        return self._grid

    @property
    def state(self) -> SimulationState:
        return self._state

    @property
    def paused(self) -> bool:
        return self._state is SimulationState.PAUSED

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    def pause(self) -> None:
        if self._state is not SimulationState.PAUSED:
            self._state = SimulationState.PAUSED
            logger.info("Simulation paused")

    def resume(self) -> None:
        if self._state is not SimulationState.RUNNING:
            self._state = SimulationState.RUNNING
            logger.info("Simulation resumed")

    def toggle_pause(self) -> SimulationState:
        if self.paused:
            self.resume()
        else:
            self.pause()
        return self._state

    def reset(self) -> None:
        self._rng.reset()
        self._grid.clear()
        self._metrics = None
        self._perturbation.reset()
        self._bootstrap_population()
        logger.info("World reset with %d boids", len(self._agents))

    def resize_population(self, count: int) -> None:
        """Replace the whole flock with `count` freshly spawned boids."""

        self.update_parameters({"population": count})

    def update_parameters(self, changes: Dict[str, Any]) -> SimulationConfig:
        """Apply a parameter edit between ticks.

        The merged config is validated first; on `ConfigError` nothing changes.
        """

        previous = self._config
        config = merge_config(previous, changes)
        self._config = config
        if (
            config.flocking.visual_range != previous.flocking.visual_range
            or config.bounds != previous.bounds
        ):
            self._grid = SpatialGrid(config.flocking.visual_range, config.bounds)
            logger.info("Spatial grid rebuilt with cell size %.3f", self._grid.cell_size)
        if config.population != previous.population:
            self._bootstrap_population()
            logger.info("Population resized from %d to %d", previous.population, len(self._agents))
        logger.info("Parameters updated: %s", ", ".join(sorted(changes)))
        return config

    def step(self, tick: int) -> TickMetrics | None:
        if self._state is SimulationState.PAUSED:
            return self._metrics

        start = perf_counter()
        config = self._config
        flocking = replace(config.flocking)
        perturbation_config = replace(config.perturbation)
        perturbation = self._perturbation.snapshot()
        agents = self._agents
        grid = self._grid

        grid.rebuild(agents)

        # Every boid steers against pre-integration positions before anyone moves.
        neighbor_checks = 0
        visual_range = flocking.visual_range
        for boid in agents:
            neighbors = grid.query(boid.position, visual_range)
            neighbor_checks += steering.steer(boid, neighbors, perturbation, flocking, perturbation_config)

        explosion_fired = self._perturbation.claim_explosion(perturbation)
        if explosion_fired:
            logger.info("Explosion fired at %s on tick %d", perturbation.explosion_epicenter, tick)

        half_extents = config.bounds
        for boid in agents:
            integration.integrate(boid, flocking, half_extents)

        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(
            tick,
            agents,
            neighbor_checks,
            grid.occupied_cells,
            perturbation.attraction_active,
            explosion_fired,
            elapsed_ms,
        )
        self._metrics = metrics
        logger.debug(
            "Tick %d: %d neighbor checks, %.3f ms", tick, neighbor_checks, elapsed_ms
        )
        return metrics

    def snapshot(self, tick: int) -> Snapshot:
        perturbation = self._perturbation.snapshot()
        attractor_x, attractor_y, attractor_z = perturbation.attractor_position
        return Snapshot(
            tick=tick,
            state=self._state.value,
            metrics=self._metrics,
            agents=[self._agent_snapshot(boid) for boid in self._agents],
            attractor=SnapshotAttractor(
                x=attractor_x,
                y=attractor_y,
                z=attractor_z,
                visible=perturbation.hand_visible or perturbation.attraction_active,
                active=perturbation.attraction_active,
            ),
            world=SnapshotWorld(bounds=list(self._config.bounds)),
            metadata=SnapshotMetadata(
                population=len(self._agents),
                frame_interval=self._config.frame_interval,
                seed=self._config.seed,
                config_version=self._config.config_version,
            ),
        )

    def _bootstrap_population(self) -> None:
        flocking = self._config.flocking
        half_x, half_y, half_z = self._config.bounds
        agents: List[Boid] = []
        for index in range(self._config.population):
            position = Vector3(
                self._rng.next_range(-half_x, half_x),
                self._rng.next_range(-half_y, half_y),
                self._rng.next_range(-half_z, half_z),
            )
            velocity = self._rng.next_unit_sphere() * self._rng.next_range(flocking.min_speed, flocking.max_speed)
            agents.append(Boid(id=index, position=position, velocity=velocity))
        self._agents = agents

    @staticmethod
    def _agent_snapshot(boid: Boid) -> Dict[str, float]:
        position = boid.position
        velocity = boid.velocity
        return {
            "id": boid.id,
            "x": position.x,
            "y": position.y,
            "z": position.z,
            "vx": velocity.x,
            "vy": velocity.y,
            "vz": velocity.z,
            "speed": velocity.length(),
        }
